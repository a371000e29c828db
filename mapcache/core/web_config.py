"""KEY=VALUE map cache settings file with typed accessors."""

from pathlib import Path

_QUOTES = ("'", '"')


def parse_config_lines(lines):
    """Return ``{KEY: value}`` from dotenv-style lines; comments and junk are skipped."""
    values = {}
    for raw in lines:
        text = raw.strip()
        if not text or text.startswith("#"):
            continue
        key, sep, value = text.partition("=")
        key = key.strip()
        if not sep or not key:
            continue
        value = value.strip()
        if len(value) >= 2 and value[0] in _QUOTES and value[-1] == value[0]:
            value = value[1:-1]
        values[key] = value
    return values


class WebConfig:
    """Settings file plus in-process overrides; overrides always win."""

    def __init__(self, config_path, base_dir, overrides=None):
        self.config_path = Path(config_path)
        self.base_dir = Path(base_dir)
        self.overrides = {str(k): str(v) for k, v in (overrides or {}).items()}
        self.values = self._load()

    def _load(self):
        try:
            text = self.config_path.read_text(encoding="utf-8")
        except OSError:
            text = ""
        values = parse_config_lines(text.splitlines())
        values.update(self.overrides)
        return values

    def reload(self):
        """Re-read the file; returns the names whose values changed."""
        previous = self.values
        self.values = self._load()
        names = set(previous) | set(self.values)
        return sorted(name for name in names if previous.get(name) != self.values.get(name))

    def get_str(self, name, default):
        """Stripped value, or ``default`` when missing or blank."""
        value = (self.values.get(name) or "").strip()
        return value or default

    def _get_number(self, name, default, minimum, cast):
        raw = self.values.get(name)
        if raw is None:
            return default
        try:
            parsed = cast(raw.strip())
        except ValueError:
            return default
        if minimum is not None:
            parsed = max(minimum, parsed)
        return parsed

    def get_int(self, name, default, minimum=None):
        """Integer value clamped up to ``minimum``; unparsable values give ``default``."""
        return self._get_number(name, default, minimum, int)

    def get_float(self, name, default, minimum=None):
        return self._get_number(name, default, minimum, float)

    def get_path(self, name, default):
        """Path value; relative entries are anchored at ``base_dir``."""
        raw = (self.values.get(name) or "").strip()
        if not raw:
            return Path(default)
        path = Path(raw)
        return path if path.is_absolute() else self.base_dir / path
