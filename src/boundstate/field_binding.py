"""
Headless field binding.

FieldBinding is the controller a presentation layer drives for one input:
it keeps an edit buffer, converts between stored and displayed forms, and
commits to the underlying BoundValue either on every change or on blur.

The property bag handed to the presentation layer is passed through the
field_properties channel first, so collaborators (validation, labelling,
theming) can decorate it without the binding knowing about them.
"""

import logging
from typing import Any, Callable, Dict, Optional

from boundevents.channel import create_channel
from boundstate.bound_value import BoundValue, is_unchanged
from boundstate.scope import current_scope

logger = logging.getLogger(__name__)


class _DontSetValue:
    """Sentinel: the extracted change carries no value to store."""

    def __repr__(self):
        return "DONT_SET_VALUE"


DONT_SET_VALUE = _DontSetValue()

_MISSING = object()

# Handlers receive (props, settings) and may mutate props in place
field_properties = create_channel(name="field_properties")


def _identity(value: Any) -> Any:
    return value


def is_event(value: Any) -> bool:
    """True for UI event objects (target, type and prevent_default)."""
    return (
        hasattr(value, 'target')
        and hasattr(value, 'type')
        and callable(getattr(value, 'prevent_default', None))
    )


def default_extractor(event: Any = None, value: Any = _MISSING) -> Any:
    """Pull the new value out of a change callback's arguments.

    An explicit second argument wins, then event.target.value. An event that
    carries no value yields DONT_SET_VALUE; anything else is the value itself.
    """
    if value is not _MISSING and value is not None:
        return value
    target_value = getattr(getattr(event, 'target', None), 'value', None)
    if target_value is not None:
        return target_value
    if not is_event(event):
        return event
    return DONT_SET_VALUE


class FieldBinding:
    """Edit buffer and commit policy for one bound field."""

    def __init__(
        self,
        field: str,
        default: Any = "",
        *,
        target: Any = None,
        extract: Callable[..., Any] = default_extractor,
        transform_in: Optional[Callable[[Any], Any]] = None,
        transform_out: Optional[Callable[[Any], Any]] = None,
        blur: bool = False,
        value_prop: str = "value",
        change_prop: str = "on_change",
        refresh: Optional[Callable[[], None]] = None,
    ):
        """
        Args:
            field: Dotted path of the bound field
            default: Value shown while the field is unset
            target: Root object; defaults to the active scope's "target"
            extract: Maps change-callback arguments to a value
            transform_in: Stored value -> displayed value
            transform_out: Displayed value -> stored value
            blur: Commit only on blur instead of on every change
            value_prop: Property name carrying the displayed value
            change_prop: Property name carrying the change callback
            refresh: Called when the displayed value changed underneath
        """
        self.field = field
        self.extract = extract
        self.transform_in = transform_in or _identity
        self.transform_out = transform_out or _identity
        self.blur = blur
        self.value_prop = value_prop
        self.change_prop = change_prop
        self._refresh = refresh
        self._scope = current_scope()
        self._bound = BoundValue(field, default, target=target, refresh=self._bound_changed)
        self.current = self.transform_in(self._bound.get())

    def __repr__(self) -> str:
        return f"<FieldBinding {self.field!r} current={self.current!r}>"

    @property
    def value(self) -> Any:
        """The stored value."""
        return self._bound.get()

    @property
    def bound(self) -> BoundValue:
        return self._bound

    def _bound_changed(self) -> None:
        self.sync()
        if self._refresh is not None:
            self._refresh()

    def sync(self) -> None:
        """Reload the edit buffer from the stored value."""
        self.current = self.transform_in(self._bound.get())

    def _commit(self) -> bool:
        transformed = self.transform_out(self.current)
        if is_unchanged(self._bound.get(), transformed):
            return False
        logger.debug(f"Committing {self.field!r} = {transformed!r}")
        return self._bound.set(transformed)

    def handle_change(self, *params: Any) -> None:
        """Change callback for the presentation layer."""
        result = self.extract(*params)
        if result is DONT_SET_VALUE:
            return
        self.current = result
        if not self.blur:
            self._commit()

    def handle_blur(self, *params: Any) -> None:
        """Blur callback; commits the buffer when blur mode is on."""
        if self.blur:
            self._commit()

    def properties(self, base: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Build the property bag for the bound input.

        The bag is raised on field_properties with a settings dict describing
        the binding before it is returned.
        """
        props = dict(base or {})
        on_blur = props.get('on_blur')

        def handle_blur(*params: Any) -> None:
            if on_blur is not None:
                on_blur(*params)
            self.handle_blur(*params)

        props['on_blur'] = handle_blur
        props[self.value_prop] = self.current
        props[self.change_prop] = self.handle_change
        settings = {
            'field': self.field,
            'value': self.transform_out(self.current),
            'target': self._bound.root,
            'scope': self._scope,
            'value_prop': self.value_prop,
            'change_prop': self.change_prop,
            'refresh': self._refresh or (lambda: None),
        }
        return field_properties.raise_event(props, settings)

    def close(self) -> None:
        self._bound.close()
