"""
Edit Field Configuration
Defines which bulk-edit fields exist, where their results are written on the
Shopify product, and which context keys they refresh for later prompts.
"""


class EditFieldConfig:
    """One editable product field"""

    def __init__(self, name, product_attr, context_key=None):
        self.name = name
        self.product_attr = product_attr
        self.context_key = context_key


# Copywriting edits, applied in this order. A resolved title is visible to the
# description prompt through the context, and so on.
COPYWRITING_FIELDS = [
    EditFieldConfig('title', 'title', context_key='title'),
    EditFieldConfig('description', 'body_html', context_key='description'),
    EditFieldConfig('seo_title', 'seo_title', context_key='seo_title'),
    EditFieldConfig('seo_description', 'seo_description', context_key='seo_description'),
    EditFieldConfig('handle', 'handle'),
]

# Google Shopping fields resolved through an edit descriptor
GOOGLE_EDIT_FIELDS = [
    EditFieldConfig('product_category', 'g_category'),
    EditFieldConfig('gender', 'g_gender'),
]

# Google Shopping fields copied verbatim from settings (settings key -> product attr)
GOOGLE_STATIC_FIELDS = {
    'condition': 'g_condition',
    'ageGroup': 'g_age_group',
    'customProduct': 'g_custom_product',
}

CUSTOM_LABEL_ATTRS = ['g_label0', 'g_label1', 'g_label2', 'g_label3', 'g_label4']

# Per-variant edits (settings.inventoryPrices key -> variant attr)
VARIANT_EDIT_FIELDS = {
    'sku': 'sku',
    'barcode': 'barcode',
}

TAG_ACTIONS = ('clear', 'replace', 'add')


def get_copywriting_fields():
    return list(COPYWRITING_FIELDS)


def get_google_edit_fields():
    return list(GOOGLE_EDIT_FIELDS)
