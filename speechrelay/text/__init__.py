from speechrelay.text.replacements import (
    ReplacementCache,
    WordReplacer,
    apply_replacements,
    build_replacement_cache,
)

__all__ = [
    "ReplacementCache",
    "WordReplacer",
    "apply_replacements",
    "build_replacement_cache",
]
