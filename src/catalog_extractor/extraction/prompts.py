"""Per-brand extraction instructions and the shared response schema."""

from enum import Enum

from pydantic import BaseModel, ConfigDict


class Brand(str, Enum):
    BELCORP = "belcorp"
    NATURA = "natura"
    GENERIC = "generic"

    @classmethod
    def parse(cls, value: "str | Brand") -> "Brand":
        """Look up a brand by name, case-insensitively.

        Raises:
            ValueError: If the name is not a supported brand.
        """
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            supported = ", ".join(b.value for b in cls)
            raise ValueError(
                f"Unknown brand {value!r}. Supported brands: {supported}"
            ) from None


# Gemini structured-output schema. brand, campaign and page number are
# stamped by the pipeline and are not requested from the model.
RESPONSE_SCHEMA: dict = {
    "type": "ARRAY",
    "items": {
        "type": "OBJECT",
        "properties": {
            "code": {
                "type": "STRING",
                "description": "Product code or SKU, keeping leading zeros.",
            },
            "name": {
                "type": "STRING",
                "description": "Product name, including the variant when there is one.",
            },
            "presentation": {
                "type": "STRING",
                "description": "Unit of the content, e.g. ml, gr, units.",
            },
            "content": {
                "type": "NUMBER",
                "description": "Numeric amount of content, e.g. 750 for 750ml.",
            },
            "offerPrice": {
                "type": "NUMBER",
                "description": "Promotional price, 0 if none is shown.",
            },
            "regularPrice": {
                "type": "NUMBER",
                "description": "Original or struck-through price.",
            },
        },
        "required": ["code", "name", "regularPrice"],
    },
}

_OUTPUT_RULES = """
Prices and content are plain numbers without currency symbols, units or
thousands separators. Use 0 for a missing price or content and an empty string
for a missing presentation. Register a product every time it appears; do not
deduplicate by code. Return only a JSON array matching the schema, with no
markdown code fence.
"""

BELCORP_INSTRUCTION = (
    """
You extract product listings from a Belcorp catalog page (Esika, L'BEL, Cyzone).
Look at the page image and list every valid product block.

- code: the product code, keeping any leading zero.
- name: the product name. For SETs and KITs include the component description.
  For shades or scents, emit one record per variant named "<product> <variant>".
- presentation / content: "ml" or "gr" and its numeric amount. Leave both empty
  for SETs and KITs.
- regularPrice: the original price, usually struck through or labelled
  "valorizado en" / "precio regular".
- offerPrice: the prominent promotional price. When only a discount percentage
  is shown, compute it from the regular price. When a price per unit is shown,
  multiply it by the content.

A product is valid only with a code, a name and at least a regular price. A
product block is a visually separate area (border, background) or a tight
cluster of product information.
"""
    + _OUTPUT_RULES
)

NATURA_INSTRUCTION = (
    """
You extract product listings from a Natura catalog page. Pay attention to
regular products versus refills ("repuesto").

- code / name: as printed. Emit one record per variant. Refill names start
  with "Repuesto ".
- presentation / content: "ml" or "gr" and its numeric amount. Leave both empty
  for accessories, SETs and KITs.
- For each product block, check whether the word "repuesto" appears:
  - Not a refill: one record with regularPrice (original) and offerPrice
    (promotional).
  - Refill: two records. The regular product takes the code and prices away
    from the word "repuesto"; the refill takes those next to it. A refill's
    offerPrice is 0 unless one is printed.

A product is valid only with a code, a name and a regular price.
"""
    + _OUTPUT_RULES
)

GENERIC_INSTRUCTION = (
    """
You extract product listings from a product catalog page. For every product
visible in the image return its code (SKU), name, presentation (unit such as
ml, L, g, kg, units), content (numeric amount, e.g. 750 for 750ml), offerPrice
(discounted price) and regularPrice (original price).
"""
    + _OUTPUT_RULES
)


class BrandInstructions(BaseModel):
    """Everything the page worker needs to ask the model about one brand."""

    model_config = ConfigDict(frozen=True)

    brand: Brand
    instruction: str
    response_schema: dict
    default_brand: str = "N/A"


_INSTRUCTIONS: dict[Brand, BrandInstructions] = {
    Brand.BELCORP: BrandInstructions(
        brand=Brand.BELCORP,
        instruction=BELCORP_INSTRUCTION,
        response_schema=RESPONSE_SCHEMA,
    ),
    Brand.NATURA: BrandInstructions(
        brand=Brand.NATURA,
        instruction=NATURA_INSTRUCTION,
        response_schema=RESPONSE_SCHEMA,
        default_brand="Natura",
    ),
    Brand.GENERIC: BrandInstructions(
        brand=Brand.GENERIC,
        instruction=GENERIC_INSTRUCTION,
        response_schema=RESPONSE_SCHEMA,
    ),
}


def get_instructions(brand: str | Brand) -> BrandInstructions:
    """Return the instruction set for a brand name."""
    return _INSTRUCTIONS[Brand.parse(brand)]
