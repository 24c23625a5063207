APP_NAME = "Civis Assistant"
APP_VERSION = "1.0.0"
DEFAULT_CORS_ALLOW_ORIGINS = [
	"http://localhost",
	"http://127.0.0.1",
	"http://localhost:3000",
]
DEFAULT_TRUSTED_HOSTS = [
	"127.0.0.1",
	"localhost",
	"testserver",
]
SQLITE_BUSY_TIMEOUT_MS = 5000

DEFAULT_USER_EMAIL = "owner@civis.local"
DEFAULT_ORG_NAME = "Civis"

RATE_LIMIT_SCOPE = "ai"
DEFAULT_RATE_LIMIT_PER_MINUTE = 30
RATE_LIMIT_WINDOW_MS = 60_000

DEFAULT_PROVIDER_TIMEOUT_S = 20.0
DEFAULT_TEMPERATURE = 0.3
DEFAULT_HUMOR_PROBABILITY = 0.08

PROVIDER_LABEL_FALLBACK = "fallback"
PROVIDER_LABEL_NAV_ENGINE = "civis-nav-engine"
PROVIDER_LABEL_TOUR_ENGINE = "civis-tour-engine"
PROVIDER_LABEL_LOCAL = "civis-local"

CHAT_MODES = ("qna", "summary", "email", "tour")

MODULE_ROUTES = {
	"overview": "/dashboard",
	"crm": "/dashboard/crm",
	"accounting": "/dashboard/accounting",
	"hr": "/dashboard/hr",
	"operations": "/dashboard/operations",
	"portal": "/dashboard/portal",
}

MODULE_TITLES = {
	"overview": "Overview",
	"crm": "CRM",
	"accounting": "Accounting",
	"hr": "HR",
	"operations": "Operations",
	"portal": "Client Portal",
}

CONTACT_INACTIVITY_DAYS = 21
DEAL_STALL_DAYS = 10

DEMO_SNAPSHOT = {
	"employees": 18,
	"contacts": 240,
	"open_deals": 32,
	"overdue_invoices": 5,
	"pending_expenses": 7,
	"revenue_mtd": 4_850_000,
	"expenses_mtd": 2_130_000,
	"active_portals": 6,
	"active_playbooks": 4,
	"active_automations": 9,
	"inactive_contacts": 14,
	"stalled_deals": 3,
	"payroll_monthly": 7_200_000,
}
