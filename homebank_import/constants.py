SETTINGS_SUFFIX = ".xhb"
CSV_SUFFIX = ".csv"
DUPLICATES_CSV_SUFFIX = ".duplicates.csv"
DUPLICATES_DUMP_SUFFIX = ".duplicates.txt"
DEFAULT_CONFIG_FILE = ".homebank_import.yaml"

XML_DECLARATION = '<?xml version="1.0"?>'
XML_INDENT = "  "

# element names of the settings document
PROPERTIES_TAG = "properties"
ACCOUNT_TAG = "account"
PAYEE_TAG = "pay"
CATEGORY_TAG = "cat"
TAG_TAG = "tag"
ASSIGNMENT_TAG = "asg"
ENTRY_TAG = "ope"

# element names of the paymode pattern file
PAYMODE_PATTERNS_TAG = "paymodepatterns"
PAYMODE_PATTERN_TAG = "pattern"

# new tags go after the last element of the first anchor kind found
TAG_ANCHOR_ORDER = (
    TAG_TAG,
    CATEGORY_TAG,
    PAYEE_TAG,
    ACCOUNT_TAG,
    PROPERTIES_TAG,
)

SPLIT_SEPARATOR = "||"
TAG_SEPARATOR = " "

SOURCE_VALUE_DATE_FORMAT = "%Y-%m-%d-%H.%M.%S.%f"
SOURCE_ACCOUNTING_DATE_FORMAT = "%Y-%m-%d"
LEDGER_CSV_DATE_FORMAT = "%d-%m-%y"
LEDGER_CSV_HEADER = (
    "date",
    "paymode",
    "info",
    "payee",
    "memo",
    "amount",
    "category",
    "tags",
)
REFERENCE_MEMO_TEMPLATE = "[Ref: {reference}] {memo}"

DUPLICATES_DUMP_TEMPLATE = """\
Duplicate entries rejected while importing into {{ target | as_posix_path }}
Generated at {{ timestamp }}
{% for entry in entries %}
[{{ loop.index }}]
    date: {{ entry.date }}
    amount: {{ entry.amount | amount }}
    paymode: {{ entry.paymode.name }}
    account: {{ entry.account | name_or_empty }}
    dst_account: {{ entry.dst_account | name_or_empty }}
    payee: {{ entry.payee | name_or_empty }}
    category: {{ category_path(entry.category) }}
    memo: {{ entry.memo }}
    info: {{ entry.info }}
    tags: {{ entry.tags | join(" ") }}
    status: {{ entry.status.name }}
    flags: {{ entry.flags | int }}
    link_id: {{ entry.link_id }}
{% endfor %}
"""
