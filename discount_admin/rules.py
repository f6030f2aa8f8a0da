"""
Discount input rules.

Raw field names are the admin form's wire contract; stored rules and the
discount engine depend on them, so they do not change.
"""

MANAGE_PROMOTIONS = "commerce-managePromotions"

DEFAULT_PERCENT_SYMBOL = "%"

AMOUNT_FIELDS = ("baseDiscount", "perItemDiscount")
DATE_FIELDS = ("dateFrom", "dateTo")
PERCENT_FIELD = "percentDiscount"

# raw key, then accepted aliases
PRODUCTS_KEYS = ("products", "productIds")
PRODUCT_TYPES_KEYS = ("productTypes", "productTypeIds")
GROUPS_KEYS = ("groups", "userGroupIds")

ID_SEPARATORS = ("|", ",")

# tried after ISO-8601 / timestamp parsing fails
DATE_INPUT_FORMATS = (
    "%Y-%m-%d",
    "%Y-%m-%d %H:%M",
    "%m/%d/%Y",
    "%m/%d/%Y %I:%M %p",
    "%d.%m.%Y",
)

TRUE_STRINGS = frozenset({"1", "true", "yes", "on"})
FALSE_STRINGS = frozenset({"", "0", "false", "no", "off"})

INDEX_TEMPLATE = "commerce/promotions/discounts/index"
EDIT_TEMPLATE = "commerce/promotions/discounts/_edit"

MSG_CREATE_TITLE = "Create a Discount"
MSG_SAVED = "Discount saved."
MSG_SAVE_FAILED = "Couldn’t save discount."
MSG_REORDER_FAILED = "Couldn’t reorder discounts."
