# lsystem.py
# String-rewriting grammar for the mimosa tree.
# Run: python lsystem.py   (prints how the mimosa grammar grows per generation)

from typing import Dict, Iterator

# ---------- Mimosa grammar ----------
MIMOSA_AXIOM = "F"
MIMOSA_RULES = {"F": "FF+[+F-F-^F]-[-F+F&F]"}
MIMOSA_GENERATIONS = 5

# ---------- Errors ----------
class LSystemError(ValueError):
    pass

class ConfigError(LSystemError):
    pass

class UnbalancedBracketError(LSystemError):
    def __init__(self, index: int, message: str = ""):
        self.index = index
        super().__init__(message or f"']' at symbol {index} has no matching '['")

def require(cond: bool, msg: str) -> None:
    if not cond:
        raise ConfigError(msg)

def _check_grammar(rules: Dict[str, str], generations: int) -> None:
    require(isinstance(generations, int) and not isinstance(generations, bool),
            "generations must be an integer")
    require(generations >= 0, "generations must be >= 0")
    for key in rules:
        require(isinstance(key, str) and len(key) == 1,
                f"rule key {key!r} must be a single symbol")

# ---------- Expansion ----------
def rewrite(symbols: str, rules: Dict[str, str]) -> str:
    """Apply one generation of the rules to every symbol."""
    # join keeps each round linear in its output length
    return "".join([rules.get(ch, ch) for ch in symbols])

def _generations(axiom: str, rules: Dict[str, str], generations: int) -> Iterator[str]:
    state = axiom
    yield state
    for _ in range(generations):
        state = rewrite(state, rules)
        yield state

def iter_generations(axiom: str, rules: Dict[str, str], generations: int) -> Iterator[str]:
    """Yield the axiom and then each generation's string, in order.

    Arguments are checked here, not on the first next().
    """
    _check_grammar(rules, generations)
    return _generations(axiom, rules, generations)

def expand(axiom: str, rules: Dict[str, str], generations: int) -> str:
    """Rewrite `axiom` for `generations` rounds, each round feeding on the last.

    Symbols without a rule pass through unchanged. Output grows geometrically:
    the mimosa rule multiplies the F count by 8 per round, so past ~8
    generations the string no longer comfortably fits in memory.
    """
    _check_grammar(rules, generations)
    state = axiom
    for _ in range(generations):
        state = rewrite(state, rules)
    return state

def bracket_depth(symbols: str) -> int:
    """Return the deepest '[' nesting, raising on any unbalanced bracket."""
    opened = []  # indices of '[' still open
    deepest = 0
    for i, ch in enumerate(symbols):
        if ch == "[":
            opened.append(i)
            deepest = max(deepest, len(opened))
        elif ch == "]":
            if not opened:
                raise UnbalancedBracketError(i)
            opened.pop()
    if opened:
        raise UnbalancedBracketError(opened[-1], f"'[' at symbol {opened[-1]} is never closed")
    return deepest

if __name__ == "__main__":
    for gen, s in enumerate(iter_generations(MIMOSA_AXIOM, MIMOSA_RULES, MIMOSA_GENERATIONS)):
        print(f"gen {gen}: {len(s):,} symbols, {s.count('F'):,} F, depth {bracket_depth(s)}")
