"""
Choice grant: the player picks `count` options, each carrying nested grants.

Nested grant configs are ordinary grant configs of any type (choices
included) and go through the same factory as top-level grants. Results
are recorded under "<option label>:<index of the grant in the option>".
An option picked again (allowDuplicates) records its later passes under
"<label>:<index>#<pass>", so every pass is reversed.

Options are identified by their label. Renaming an option on the source
item orphans the records of earlier applications.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, ClassVar, Literal

from ..state.schema import (
    ApplyOptions,
    ChoiceGrantConfig,
    ChoiceOption,
    GrantResult,
    GrantSummary,
    OptionSummary,
)
from .base import BaseGrant

if TYPE_CHECKING:
    from ..state.actor import ActorDocument

logger = logging.getLogger(__name__)


def split_result_key(key: str) -> tuple[str, int] | None:
    """Split "<label>:<index>[#<pass>]" on the last colon. Labels may contain colons."""
    label, sep, tail = key.rpartition(":")
    index, hash_sep, repeat = tail.partition("#")
    if not sep or not index.isdigit() or (hash_sep and not repeat.isdigit()):
        return None
    return label, int(index)


class ChoiceGrant(BaseGrant):
    """Lets the player pick among options of nested grants."""

    TYPE: ClassVar[str] = "choice"
    ICON: ClassVar[str] = "icons/svg/choice.svg"
    TYPE_LABEL: ClassVar[str] = "Choice"
    config_model: ClassVar[type[ChoiceGrantConfig]] = ChoiceGrantConfig

    config: ChoiceGrantConfig

    @property
    def count(self) -> int:
        return self.config.count

    @property
    def options(self) -> list[ChoiceOption]:
        return self.config.options

    def find_option(self, label: str) -> ChoiceOption | None:
        return next((o for o in self.options if o.label == label), None)

    def _sub_grant(self, config: dict[str, Any]) -> BaseGrant | None:
        from .factory import create_grant

        return create_grant(config, self.context, self.source)

    def _nested_config(self, key: str) -> dict[str, Any] | None:
        parsed = split_result_key(key)
        if parsed is None:
            return None
        option = self.find_option(parsed[0])
        if option is None or parsed[1] >= len(option.grants):
            return None
        return option.grants[parsed[1]]

    async def apply(
        self,
        actor: "ActorDocument",
        data: dict[str, Any] | None = None,
        options: ApplyOptions | None = None,
    ) -> GrantResult:
        options = options or ApplyOptions()
        result = self._begin(actor)
        if not result.success:
            return result

        if not self.options:
            result.notifications.append("Choice grant has no options to apply")
            return result

        data = data or {}
        selected = list(data.get("selected") or [])

        if len(selected) < self.count and not self.optional:
            return result.fail(f"Must select {self.count} options, only {len(selected)} selected")

        if not self.config.allow_duplicates and len(set(selected)) != len(selected):
            return result.fail("Duplicate selections not allowed")

        sub_data = data.get("subGrants") or {}
        selected_options: list[str] = []
        grant_results: dict[str, Any] = {}
        passes: dict[str, int] = {}

        for label in selected:
            option = self.find_option(label)
            if option is None:
                result.errors.append(f"Unknown option: {label}")
                continue

            selected_options.append(label)
            result.notifications.append(f"Selected: {label}")
            passes[label] = passes.get(label, 0) + 1
            suffix = f"#{passes[label]}" if passes[label] > 1 else ""

            for index, config in enumerate(option.grants):
                grant = self._sub_grant(config)
                if grant is None:
                    result.errors.append(f"Unknown grant type: {config.get('type')}")
                    continue

                grant_data = sub_data.get(config.get("_id") or config.get("id")) or {}
                sub_result = await grant.apply(actor, grant_data, options)
                grant_results[f"{label}:{index}{suffix}"] = {
                    "type": grant.TYPE,
                    "applied": sub_result.applied,
                }
                result.notifications.extend(sub_result.notifications)
                result.errors.extend(sub_result.errors)

        if selected_options:
            result.applied = {
                "selectedOptions": selected_options,
                "grantResults": grant_results,
            }

        return self._finish(result)

    async def reverse(self, actor: "ActorDocument", applied: dict[str, Any]) -> dict[str, Any]:
        applied = applied or {}
        reversed_results: list[tuple[str, dict[str, Any]]] = []

        for key, record in reversed(list((applied.get("grantResults") or {}).items())):
            config = self._nested_config(key)
            if config is None:
                logger.warning(f"No option grant matches recorded key {key!r}, skipping")
                continue
            grant = self._sub_grant(config)
            if grant is None:
                continue
            restore = await grant.reverse(actor, record.get("applied") or {})
            reversed_results.append((key, {"type": grant.TYPE, "data": restore}))

        return {
            "selected": list(applied.get("selectedOptions") or []),
            # Back to application order for restore()
            "grantResults": dict(reversed(reversed_results)),
        }

    async def restore(self, actor: "ActorDocument", restore_data: dict[str, Any]) -> GrantResult:
        """Re-give each nested grant from its own restore data."""
        result = self._begin(actor)
        restore_data = restore_data or {}
        if not result.success:
            return result

        grant_results: dict[str, Any] = {}
        for key, record in (restore_data.get("grantResults") or {}).items():
            config = self._nested_config(key)
            grant = self._sub_grant(config) if config is not None else None
            if grant is None:
                result.errors.append(f"Cannot restore choice grant {key}")
                continue
            sub_result = await grant.restore(actor, record.get("data") or {})
            grant_results[key] = {"type": grant.TYPE, "applied": sub_result.applied}
            result.notifications.extend(sub_result.notifications)
            result.errors.extend(sub_result.errors)

        selected = list(restore_data.get("selected") or [])
        if selected:
            result.applied = {"selectedOptions": selected, "grantResults": grant_results}

        return self._finish(result)

    def get_automatic_value(self) -> dict[str, Any] | Literal[False]:
        # Always interactive
        return False

    def validate(self) -> list[str]:
        errors = super().validate()

        if not self.options:
            errors.append("Choice grant has no options")

        if self.count < 1:
            errors.append("Choice grant count must be at least 1")
        elif self.count > len(self.options) and not self.config.allow_duplicates:
            errors.append(
                f"Cannot select {self.count} from {len(self.options)} options without duplicates"
            )

        for option in self.options:
            for config in option.grants:
                grant = self._sub_grant(config)
                if grant is None:
                    errors.append(f'Unknown grant type "{config.get("type")}" in option "{option.label}"')
                    continue
                errors.extend(f'Option "{option.label}": {e}' for e in grant.validate())

        return errors

    async def get_summary(self) -> GrantSummary:
        summary = await super().get_summary()
        summary.choice_count = self.count
        summary.options = []

        for option in self.options:
            option_summary = OptionSummary(label=option.label, description=option.description)
            for config in option.grants:
                grant = self._sub_grant(config)
                if grant is not None:
                    option_summary.grants.append(await grant.get_summary())
            summary.options.append(option_summary)

        return summary
