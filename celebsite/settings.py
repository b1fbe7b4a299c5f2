import os, os.path, json
from decimal import Decimal

BASE_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))

def local(fn):
	return os.path.join(BASE_DIR, 'local', fn)

# Deployment-specific settings live in local/environment.json. Without
# that file (e.g. in unit tests) we fall back to a debug configuration.
environment = { }
if os.path.exists(local("environment.json")):
	with open(local("environment.json")) as f:
		environment = json.load(f)

SECRET_KEY = environment.get("secret-key", "insecure-development-key")
DEBUG = environment.get("debug", True)

ALLOWED_HOSTS = [environment.get("host", "localhost")]

# Applications & middleware

INSTALLED_APPS = [
	'django.contrib.admin',
	'django.contrib.auth',
	'django.contrib.contenttypes',
	'django.contrib.sessions',
	'django.contrib.messages',
	'django.contrib.staticfiles',

	'celebsite',
	'celebrations',

	# 3rd party apps. They go last so that we can override their
	# templates.
	'htmlemailer',
]

MIDDLEWARE = [
	'django.contrib.sessions.middleware.SessionMiddleware',
	'django.middleware.common.CommonMiddleware',
	'django.middleware.csrf.CsrfViewMiddleware',
	'django.contrib.auth.middleware.AuthenticationMiddleware',
	'django.contrib.messages.middleware.MessageMiddleware',
	'django.middleware.clickjacking.XFrameOptionsMiddleware',
]

TEMPLATES = [
	{
		'BACKEND': 'django.template.backends.django.DjangoTemplates',
		'DIRS': [],
		'APP_DIRS': True,
		'OPTIONS': {
			'context_processors': [
				'django.template.context_processors.debug',
				'django.template.context_processors.request',
				'django.contrib.auth.context_processors.auth',
				'django.contrib.messages.context_processors.messages',
			],
		},
	},
]

# Database

DATABASES = {
	'default': {
		'ENGINE': 'django.db.backends.sqlite3',
		'NAME': local('db.sqlite3'),
	}
}
if environment.get('db'):
	DATABASES['default'].update(environment['db'])
	CONN_MAX_AGE = 60

DEFAULT_AUTO_FIELD = 'django.db.models.AutoField'

# Settings

ROOT_URLCONF = 'celebsite.urls'

LANGUAGE_CODE = 'en-us'
TIME_ZONE = 'America/New_York' # election days and session ends are reckoned in Washington time
USE_I18N = True
USE_TZ = True

STATIC_URL = '/static/'
STATIC_ROOT = environment.get("static", None)

EMAIL_BACKEND = 'django.core.mail.backends.console.EmailBackend'
if environment.get("email"):
	EMAIL_BACKEND = 'django.core.mail.backends.smtp.EmailBackend'
	EMAIL_HOST = environment["email"]["host"]
	EMAIL_PORT = environment["email"]["port"]
	EMAIL_HOST_USER = environment["email"]["user"]
	EMAIL_HOST_PASSWORD = environment["email"]["pw"]
	EMAIL_USE_TLS = True

if environment.get("https"):
	SESSION_COOKIE_HTTPONLY = True
	SESSION_COOKIE_SECURE = True
	CSRF_COOKIE_SECURE = True

# Logging. Errors are mailed to the ADMINS, like errors in
# management commands (see manage.py).

LOGGING = {
	'version': 1,
	'disable_existing_loggers': False,
	'formatters': {
		'simple': {
			'format': '%(asctime)s %(levelname)s %(name)s: %(message)s',
		},
	},
	'handlers': {
		'console': {
			'class': 'logging.StreamHandler',
			'formatter': 'simple',
		},
		'mail_admins': {
			'level': 'ERROR',
			'class': 'django.utils.log.AdminEmailHandler',
		},
	},
	'loggers': {
		'celebrations': {
			'handlers': ['console', 'mail_admins'],
			'level': environment.get("log-level", "INFO"),
		},
	},
}

# Local Settings

ADMINS = [("Site Admin", environment.get("admin-email", "admin@localhost"))]
SERVER_EMAIL = environment.get("server-email", "errors@localhost")
DEFAULT_FROM_EMAIL = environment.get("from-email", "Celebrations <hello@localhost>")
SITE_ROOT_URL = ('https' if environment.get("https") else 'http') + "://" + environment.get("host", "localhost")

# Campaign finance rules.
#
# Ceilings are per recipient. 'cycle' tiers reset when the next two-year
# campaign cycle starts, 'election' tiers reset at each election (the
# primary and the general are separate buckets).
FEC_COMPLIANCE_TIERS = {
	"incomplete": {
		"ceiling": Decimal("50"),
		"per_donation": Decimal("50"),
		"reset": "cycle",
	},
	"basic": {
		"ceiling": Decimal("200"),
		"per_donation": Decimal("50"),
		"reset": "cycle",
	},
	"compliant": {
		"ceiling": Decimal(str(environment.get("fec-per-election", "3500"))),
		"per_donation": Decimal(str(environment.get("fec-per-election", "3500"))),
		"reset": "election",
	},
}
FEC_MINIMUM_DONATION = Decimal("1")
FEC_PAC_ANNUAL_LIMIT = Decimal(str(environment.get("fec-pac-annual", "5000")))

# OpenFEC, where state primary and special election dates come from.
FEC_API_KEY = environment.get("fec-api-key")
FEC_API_BASE = environment.get("fec-api-base", "https://api.open.fec.gov/v1")

# Congressional sessions. Session end dates default to the constitutional
# January 3rd. Known adjournment dates can be listed here by session key,
# e.g. { "119-1": "2026-01-03" }.
CONGRESS_GOV_API_KEY = environment.get("congress-gov-api-key")
CONGRESS_GOV_API_BASE = environment.get("congress-gov-api-base", "https://api.congress.gov/v3")
CONGRESS_SESSION_END_DATES = environment.get("session-end-dates", { })
DEFUNCT_WARNING_PERIOD_MONTHS = 1

# The civics lookup that maps an address to its congressional district.
CIVICS_API = {
	"endpoint": environment.get("civics", {}).get("endpoint", "https://www.googleapis.com/civicinfo/v2/divisionsByAddress"),
	"key": environment.get("civics", {}).get("key"),
	"district_pattern": r"^ocd-division/country:us/state:[a-z]{2}/cd:\d+$",
}
