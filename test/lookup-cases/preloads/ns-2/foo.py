from quiver_lookup_helpers import GREETING

desc(GREETING)
