SUPPORTED_CURRENCIES = ("USD", "MXN", "JPY", "GBP", "EUR", "CAD", "AUD")

# Digits after the decimal point in each currency's minor unit; 2 unless listed
CURRENCY_MINOR_DIGITS = {
    "JPY": 0,
}

RECURRING_NOTE_PREFIX = "Recurring: "
