# custom_components/ipfire_traffic/const.py

DOMAIN = "ipfire_traffic"
DEFAULT_SCAN_INTERVAL_SECONDS = 5
DEFAULT_TIMEOUT_SECONDS = 10

# The IPFire web interface listens on 444 with a self-signed certificate
DEFAULT_PORT = 444
DEFAULT_USERNAME = "admin"
DEFAULT_VERIFY_SSL = False

SPEED_CGI_PATH = "/cgi-bin/speed.cgi"

# Leaf elements of the speed.cgi XML: cumulative KB received / transmitted
RX_ELEMENT = "rxb"
TX_ELEMENT = "txb"

AUTH_REQUIRED_MARKER = "401 Authorization Required"

# Returned instead of a rate when none can be computed for this poll
RATE_UNAVAILABLE = -1.0

# The client reports KB per millisecond, sensors show kB/s
MS_PER_SECOND = 1000
