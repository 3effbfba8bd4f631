from .ingredients import IngredientCache, IngredientMatcher, IngredientProvider, StaticIngredientProvider

__all__ = [
    "IngredientCache",
    "IngredientMatcher",
    "IngredientProvider",
    "StaticIngredientProvider",
]
