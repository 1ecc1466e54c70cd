# src/atlas_release/core/trigger/cron.py
"""
Expressões de schedule no formato cron (5 campos), avaliadas em UTC.

Sintaxe suportada:
    minute hour day-of-month month day-of-week

    - `*`, valores, listas (`1,15`), intervalos (`1-5`) e passos (`*/15`, `10-40/10`)
    - nomes de meses (`jan`..`dec`) e de dias (`sun`..`sat`), sem distinção de caixa
    - `7` também representa domingo no campo day-of-week
    - aliases `@hourly`, `@daily`/`@midnight`, `@weekly`, `@monthly`, `@yearly`/`@annually`

Quando day-of-month e day-of-week são ambos restritos, um dia corresponde se
satisfizer qualquer um dos dois (regra do cron Vixie).

Erros de sintaxe levantam `InvalidScheduleError` no momento do parse.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import FrozenSet, Iterator, Optional, Tuple

from atlas_release.core.config.errors import InvalidScheduleError
from atlas_release.core.traceability.events import ensure_tzaware_utc as ensure_utc


ALIASES = {
    "@hourly": "0 * * * *",
    "@daily": "0 0 * * *",
    "@midnight": "0 0 * * *",
    "@weekly": "0 0 * * 0",
    "@monthly": "0 0 1 * *",
    "@yearly": "0 0 1 1 *",
    "@annually": "0 0 1 1 *",
}

_MONTH_NAMES = {
    name: i + 1
    for i, name in enumerate(
        ["jan", "feb", "mar", "apr", "may", "jun", "jul", "aug", "sep", "oct", "nov", "dec"]
    )
}
_DAY_NAMES = {name: i for i, name in enumerate(["sun", "mon", "tue", "wed", "thu", "fri", "sat"])}

# Alcance da busca por disparos: cobre o ciclo completo de anos bissextos.
SEARCH_HORIZON_DAYS = 366 * 8


def _parse_value(token: str, low: int, high: int, names: Optional[dict], field_name: str) -> int:
    t = token.strip().lower()
    if names and t in names:
        return names[t]
    try:
        value = int(t)
    except ValueError:
        raise InvalidScheduleError(f"Valor inválido '{token}' no campo {field_name}") from None
    if not low <= value <= high:
        raise InvalidScheduleError(f"Valor {value} fora do intervalo [{low}, {high}] no campo {field_name}")
    return value


def _parse_field(
    raw: str,
    low: int,
    high: int,
    field_name: str,
    names: Optional[dict] = None,
) -> Tuple[FrozenSet[int], bool]:
    """Retorna (valores permitidos, campo é irrestrito `*`)."""
    values = set()
    unrestricted = raw.strip() == "*"
    for part in raw.split(","):
        if not part:
            raise InvalidScheduleError(f"Lista vazia no campo {field_name}: '{raw}'")
        step = 1
        if "/" in part:
            base, _, step_raw = part.partition("/")
            try:
                step = int(step_raw)
            except ValueError:
                raise InvalidScheduleError(f"Passo inválido '{step_raw}' no campo {field_name}") from None
            if step < 1:
                raise InvalidScheduleError(f"Passo deve ser >= 1 no campo {field_name}")
        else:
            base = part

        if base == "*":
            start, end = low, high
        elif "-" in base:
            a, _, b = base.partition("-")
            start = _parse_value(a, low, high, names, field_name)
            end = _parse_value(b, low, high, names, field_name)
            if start > end:
                raise InvalidScheduleError(f"Intervalo decrescente '{base}' no campo {field_name}")
        else:
            start = _parse_value(base, low, high, names, field_name)
            end = high if "/" in part else start

        values.update(range(start, end + 1, step))

    return frozenset(values), unrestricted


@dataclass(frozen=True)
class CronSchedule:
    """
    Schedule cron já validado.

    Use `CronSchedule.parse(expression)`; a instância é imutável e segura
    para compartilhamento entre threads.
    """

    expression: str
    minutes: FrozenSet[int]
    hours: FrozenSet[int]
    days_of_month: FrozenSet[int]
    months: FrozenSet[int]
    days_of_week: FrozenSet[int]
    dom_restricted: bool
    dow_restricted: bool

    @classmethod
    def parse(cls, expression: str) -> "CronSchedule":
        if not isinstance(expression, str) or not expression.strip():
            raise InvalidScheduleError("Expressão de schedule deve ser uma string não vazia")

        normalized = ALIASES.get(expression.strip().lower(), expression.strip())
        fields = normalized.split()
        if len(fields) != 5:
            raise InvalidScheduleError(
                f"Expressão cron deve ter 5 campos, recebido {len(fields)}: '{expression}'"
            )

        minutes, _ = _parse_field(fields[0], 0, 59, "minute")
        hours, _ = _parse_field(fields[1], 0, 23, "hour")
        dom, dom_any = _parse_field(fields[2], 1, 31, "day-of-month")
        months, _ = _parse_field(fields[3], 1, 12, "month", _MONTH_NAMES)
        dow_raw, dow_any = _parse_field(fields[4], 0, 7, "day-of-week", _DAY_NAMES)
        dow = frozenset(0 if d == 7 else d for d in dow_raw)

        schedule = cls(
            expression=expression,
            minutes=minutes,
            hours=hours,
            days_of_month=dom,
            months=months,
            days_of_week=dow,
            dom_restricted=not dom_any,
            dow_restricted=not dow_any,
        )
        if schedule.next_after(datetime.now(timezone.utc)) is None:
            raise InvalidScheduleError(f"Expressão nunca produz um disparo: '{expression}'")
        return schedule

    # ------------------------------------------------------------------
    # Correspondência
    # ------------------------------------------------------------------
    def matches_day(self, day: date) -> bool:
        if day.month not in self.months:
            return False
        in_dom = day.day in self.days_of_month
        # isoweekday: segunda=1 .. domingo=7; cron: domingo=0
        in_dow = (day.isoweekday() % 7) in self.days_of_week
        if self.dom_restricted and self.dow_restricted:
            return in_dom or in_dow
        if self.dom_restricted:
            return in_dom
        if self.dow_restricted:
            return in_dow
        return True

    def matches(self, dt: datetime) -> bool:
        dt = ensure_utc(dt)
        return dt.minute in self.minutes and dt.hour in self.hours and self.matches_day(dt.date())

    def _slots_on(self, day: date, *, reverse: bool = False) -> Iterator[datetime]:
        for hour in sorted(self.hours, reverse=reverse):
            for minute in sorted(self.minutes, reverse=reverse):
                yield datetime.combine(day, time(hour, minute), tzinfo=timezone.utc)

    # ------------------------------------------------------------------
    # Busca de disparos
    # ------------------------------------------------------------------
    def next_after(self, dt: datetime) -> Optional[datetime]:
        """Primeiro disparo estritamente posterior a `dt` (None se não houver no horizonte)."""
        dt = ensure_utc(dt)
        day = dt.date()
        for offset in range(SEARCH_HORIZON_DAYS):
            current = day + timedelta(days=offset)
            if not self.matches_day(current):
                continue
            for slot in self._slots_on(current):
                if slot > dt:
                    return slot
        return None

    def latest_at_or_before(self, dt: datetime) -> Optional[datetime]:
        """Último disparo em ou antes de `dt` (None se não houver no horizonte)."""
        dt = ensure_utc(dt)
        day = dt.date()
        for offset in range(SEARCH_HORIZON_DAYS):
            current = day - timedelta(days=offset)
            if not self.matches_day(current):
                continue
            for slot in self._slots_on(current, reverse=True):
                if slot <= dt:
                    return slot
        return None
