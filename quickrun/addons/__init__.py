from quickrun.addons import (
    calculator, currency, script_filter, web_search, file_browser,
)

# Fixed priority: the first addon whose parse() matches owns the result list.
# Plain fuzzy matching over entries runs when none of them match.
ALL_ADDONS = [
    calculator, currency, script_filter, web_search, file_browser,
]
