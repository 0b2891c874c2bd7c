"""
A pretty-printer for Tram values.
"""
from tram.tram_datatypes import Kind, Value, format_number


class Printer:
    """Formats Tram values in two forms.

    `pformat` is the debug form used by the REPL (strings are quoted);
    `to_display` is what `print` writes (strings appear as-is, everything
    else falls back to the debug form).
    """

    def __init__(self, indent_width=4):
        self._indent_char = " " * indent_width
        self._handlers = self._create_handlers()

    def pformat(self, value: Value, level=0) -> str:
        """Public entry point to format a value."""
        return self._handlers[value.kind](value, level)

    def to_display(self, value: Value) -> str:
        if value.kind is Kind.STRING:
            return value.payload.value
        return self.pformat(value)

    def _create_handlers(self):
        return {
            Kind.NUMBER: self._pformat_number,
            Kind.STRING: self._pformat_string,
            Kind.BOOL: self._pformat_bool,
            Kind.ARRAY: self._pformat_array,
            Kind.MAP: self._pformat_map,
            Kind.FUNCTION: self._pformat_function,
            Kind.NIL: self._pformat_nil,
        }

    def _pformat_number(self, value, level):
        return format_number(value.payload)

    def _pformat_string(self, value, level):
        text = value.payload.value.replace("\\", "\\\\").replace('"', '\\"')
        text = text.replace("\n", "\\n").replace("\t", "\\t")
        return f'"{text}"'

    def _pformat_bool(self, value, level):
        return 'true' if value.payload else 'false'

    def _pformat_nil(self, value, level):
        return 'nil'

    def _pformat_function(self, value, level):
        return value.payload.display()

    def _pformat_array(self, value, level):
        # Elements use their display form, as `print` would show them.
        items = value.payload.value
        return "[" + ", ".join(self._element(item, level) for item in items) + "]"

    def _pformat_map(self, value, level):
        entries = value.payload.value
        if not entries:
            return "%{}"
        indent = self._indent_char * (level + 1)
        lines = [
            f"{indent}{self._element(k, level + 1)} => {self._element(v, level + 1)}"
            for k, v in entries.items()
        ]
        return "%{\n" + ",\n".join(lines) + "\n" + self._indent_char * level + "}"

    def _element(self, value, level):
        if value.kind is Kind.STRING:
            return value.payload.value
        return self.pformat(value, level)
