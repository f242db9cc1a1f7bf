from collections.abc import Callable
from importlib import import_module


def lazy_import(
    module_name: str,
    name: str | None = None,
    extra: str | None = None,
) -> Callable[[], object]:
    """Lazily import a module or an attribute from a module.

    Optional backends are imported on first use so the base install
    does not need them. ``extra`` names the pip extra to suggest when
    the import fails.
    """

    def _load() -> object:
        try:
            mod = import_module(module_name)
        except ImportError as e:
            if extra is None:
                raise
            raise ImportError(
                f"{module_name} is required for this backend; "
                f"install it with: pip install 'fcrm-chat[{extra}]'"
            ) from e
        return getattr(mod, name) if name else mod

    return _load
