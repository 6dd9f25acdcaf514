"""Calculator addon: inline arithmetic and unit conversion.

Handles:
    "2+2"                 -> 4
    "sqrt(16)"            -> 4
    "(1 + 2) * 3 ^ 2"     -> 27
    "10 % 4"              -> 2
    "-2^2"                -> -4
    "ln(e)"               -> 1
    "10 km to mi"         -> 6.21371
    "72 fahrenheit in celsius"

Anything that does not parse cleanly (unknown identifier, stray token,
division by zero, non-finite result) is not a calculator input: parse()
returns None and the input falls through to the other addons.
"""

import math
import re

import pint

from quickrun.addons.parse import Parse, Item, Action, COPY

_ureg = pint.UnitRegistry()

_FUNCTIONS = {
    "sqrt": math.sqrt,
    "sin": math.sin,
    "cos": math.cos,
    "tan": math.tan,
    "log": math.log10,
    "ln": math.log,
    "exp": math.exp,
    "abs": abs,
    "floor": math.floor,
    "ceil": math.ceil,
}

_CONSTANTS = {
    "pi": math.pi,
    "e": math.e,
}

_TOKEN = re.compile(r"\s*(?:(\d+(?:\.\d*)?|\.\d+)|([A-Za-z_]\w*)|(\*\*|[-+*/^%()]))")


class CalcError(ValueError):
    """The input is not a valid arithmetic expression."""


# --- Tokenizer ---

def _tokenize(text):
    """Split text into ("num", float) / ("name", str) / ("op", str) tokens."""
    tokens = []
    pos = 0
    text = text.rstrip()
    while pos < len(text):
        m = _TOKEN.match(text, pos)
        if m is None:
            raise CalcError(f"unexpected character {text[pos]!r}")
        num, name, op = m.groups()
        if num is not None:
            tokens.append(("num", float(num)))
        elif name is not None:
            tokens.append(("name", name.lower()))
        else:
            tokens.append(("op", "^" if op == "**" else op))
        pos = m.end()
    return tokens


# --- Recursive-descent parser / evaluator ---

class _Parser:
    """Evaluates while parsing. Tracks how many operators were applied so a
    bare number ("42") or a lone constant is not claimed as a calculation."""

    def __init__(self, tokens):
        self.tokens = tokens
        self.pos = 0
        self.operations = 0

    def peek(self):
        return self.tokens[self.pos] if self.pos < len(self.tokens) else (None, None)

    def take(self):
        tok = self.peek()
        self.pos += 1
        return tok

    def expect(self, op):
        kind, val = self.take()
        if kind != "op" or val != op:
            raise CalcError(f"expected {op!r}")

    def parse(self):
        value = self.expr()
        if self.pos != len(self.tokens):
            raise CalcError("trailing input")
        return value

    # expr := term (('+'|'-') term)*
    def expr(self):
        value = self.term()
        while self.peek() in (("op", "+"), ("op", "-")):
            _, op = self.take()
            rhs = self.term()
            value = value + rhs if op == "+" else value - rhs
            self.operations += 1
        return value

    # term := unary (('*'|'/'|'%') unary)*
    def term(self):
        value = self.unary()
        while self.peek() in (("op", "*"), ("op", "/"), ("op", "%")):
            _, op = self.take()
            rhs = self.unary()
            if op == "*":
                value = value * rhs
            elif rhs == 0:
                raise CalcError("division by zero")
            elif op == "/":
                value = value / rhs
            else:
                value = math.fmod(value, rhs)
            self.operations += 1
        return value

    # unary := ('+'|'-') unary | power
    def unary(self):
        if self.peek() in (("op", "-"), ("op", "+")):
            _, op = self.take()
            value = self.unary()
            return -value if op == "-" else value
        return self.power()

    # power := atom ('^' unary)?      right-associative
    def power(self):
        base = self.atom()
        if self.peek() == ("op", "^"):
            self.take()
            exponent = self.unary()
            self.operations += 1
            try:
                return math.pow(base, exponent)
            except (OverflowError, ValueError) as e:
                raise CalcError(str(e)) from e
        return base

    # atom := number | constant | function '(' expr ')' | '(' expr ')'
    def atom(self):
        kind, val = self.take()
        if kind == "num":
            return val
        if kind == "op" and val == "(":
            value = self.expr()
            self.expect(")")
            return value
        if kind == "name":
            if val in _FUNCTIONS:
                self.expect("(")
                arg = self.expr()
                self.expect(")")
                self.operations += 1
                try:
                    return float(_FUNCTIONS[val](arg))
                except (OverflowError, ValueError) as e:
                    raise CalcError(f"{val}: {e}") from e
            if val in _CONSTANTS:
                return _CONSTANTS[val]
            raise CalcError(f"unknown identifier {val!r}")
        raise CalcError("unexpected end of expression")


def evaluate(text):
    """Evaluate an arithmetic expression. Raises CalcError if it isn't one."""
    tokens = _tokenize(text)
    if not tokens:
        raise CalcError("empty expression")
    parser = _Parser(tokens)
    value = parser.parse()
    if parser.operations == 0:
        raise CalcError("no operation")
    if not math.isfinite(value):
        raise CalcError("result is not finite")
    return value


# --- Unit conversion ---

_UNIT_ALIASES = {
    "fahrenheit": "degF", "f": "degF",
    "celsius": "degC", "c": "degC", "centigrade": "degC",
    "kelvin": "kelvin",
    "mph": "mile/hour", "kph": "kilometer/hour", "kmh": "kilometer/hour",
}

_UNIT_QUERY = re.compile(
    r"^\s*(-?\d+(?:\.\d+)?)\s*([A-Za-z_°][\w°/]*)\s+(?:to|in)\s+([A-Za-z_°][\w°/]*)\s*$",
    re.IGNORECASE)


def _resolve_unit(s):
    return _UNIT_ALIASES.get(s.lower(), s)


def convert_units(value, from_unit, to_unit):
    """Convert a quantity with pint. Returns the magnitude or None."""
    try:
        result = _ureg.Quantity(value, _resolve_unit(from_unit)).to(_resolve_unit(to_unit))
    except Exception:
        return None
    magnitude = float(result.magnitude)
    if not math.isfinite(magnitude):
        return None
    return magnitude


# --- Formatting ---

def format_number(n):
    """Format a result for display and the clipboard (no separators)."""
    if n == int(n) and abs(n) < 1e15:
        return str(int(n))
    return f"{n:.10g}"


# --- Addon interface ---

def parse(text):
    m = _UNIT_QUERY.match(text)
    if m:
        value = float(m.group(1))
        magnitude = convert_units(value, m.group(2), m.group(3))
        if magnitude is not None:
            return Parse(command="convert_units",
                         args={"expression": text.strip(),
                               "result": magnitude,
                               "value": value,
                               "from_unit": m.group(2),
                               "to_unit": m.group(3)})
        return None

    try:
        result = evaluate(text)
    except CalcError:
        return None
    return Parse(command="evaluate",
                 args={"expression": text.strip(), "result": result})


def handle(p):
    result_text = format_number(p.args["result"])
    if p.command == "convert_units":
        title = (f"{format_number(p.args['value'])} {p.args['from_unit']} = "
                 f"{result_text} {p.args['to_unit']}")
    else:
        title = f"{p.args['expression']} = {result_text}"
    return [Item(title=title,
                 subtitle="Copy result to clipboard",
                 value=result_text,
                 icon="accessories-calculator",
                 action=Action(COPY, result_text),
                 kind="calculator")]
