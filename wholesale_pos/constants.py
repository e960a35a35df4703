# wholesale_pos/constants.py
APP_NAME = "Wholesale POS"
COMPANY_NAME = "Al-Mukhamis Ventures"
COMPANY_TAGLINE = "Premium Wholesale Trading"

DATA_DIR = "data"
DB_FILE_NAME = "wholesale.db"
DB_PATH_ENV = "WHOLESALE_POS_DB"

TABLE_SCHEMA_VERSION = "schema_version"
SCHEMA_VERSION = "1.0.0"

# products with less than this many base units are flagged "Low Stock"
LOW_STOCK_THRESHOLD = 10

CASH_CUSTOMER_NAME = "Cash Customer"
INVOICE_PREFIX = "INV-"
DEFAULT_SALE_MODE_NAME = "Unit"

# float tolerance shared by money and quantity comparisons
EPSILON = 1e-9
QTY_PLACES = 6

# login lockout policy
MAX_FAILED_ATTEMPTS = 5
LOCKOUT_MINUTES = 15
