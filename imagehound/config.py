"""Constants and configuration for imagehound."""

# Per-attempt absolute bound on a direct-IP fetch (seconds)
REQUEST_TIMEOUT = 10.0
# Client-level per-phase backstop, slightly larger than the attempt bound
CLIENT_TIMEOUT = 15.0

# Browser-like baseline sent with every image request
BASE_HEADERS: dict[str, list[str]] = {
    "Accept": ["image/avif,image/webp,image/apng,image/svg+xml,image/*,*/*;q=0.8"],
    "Accept-Encoding": ["gzip, deflate, br"],
    "Accept-Language": ["zh-CN,zh;q=0.9"],
    "Referer": ["https://weibo.com/"],
    "Sec-Ch-Ua": ['"Google Chrome";v="119", "Chromium";v="119", "Not?A_Brand";v="24"'],
    "Sec-Ch-Ua-Mobile": ["?0"],
    "Sec-Ch-Ua-Platform": ['"Windows"'],
    "Sec-Fetch-Dest": ["image"],
    "Sec-Fetch-Mode": ["no-cors"],
    "Sec-Fetch-Site": ["cross-site"],
    "User-Agent": [
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/119.0.0.0 Safari/537.36"
    ],
}

# Weibo image quality tiers, best first
QUALITIES = [
    "mw2000",
    "woriginal",
    "large",
    "orj1080",
    "mw1024",
    "orj960",
    "sti960",
    "wapb720",
    "mw690",
    "orj480",
    "bmiddle",
    "wap360",
    "thumbnail",
    "thumb180",
    "wap180",
    "small",
    "square",
]

# Image hostnames served by the Weibo CDN
WEIBO_HOSTNAMES = [
    f"{prefix}{n}.sinaimg.cn"
    for prefix in ("wx", "ww", "tva", "tvax")
    for n in range(1, 5)
]

# User agent for API requests (resolution providers)
USER_AGENT = "imagehound/0.1.0"

# GlobalPing measurement API
GLOBALPING_BASE_URL = "https://api.globalping.io/v1"
GLOBALPING_REQUEST_TIMEOUT = 15.0
GLOBALPING_POLL_INTERVAL = 5.0
GLOBALPING_POLL_TIMEOUT = 60.0
GLOBALPING_PROBES_PER_REGION = 5

# Geographic region names from the UN M49 standard, as used by GlobalPing
M49_REGIONS = [
    "Northern Africa",
    "Eastern Africa",
    "Middle Africa",
    "Southern Africa",
    "Western Africa",
    "Caribbean",
    "Central America",
    "South America",
    "Northern America",
    "Central Asia",
    "Eastern Asia",
    "South-eastern Asia",
    "Southern Asia",
    "Western Asia",
    "Eastern Europe",
    "Northern Europe",
    "Southern Europe",
    "Western Europe",
    "Australia and New Zealand",
    "Melanesia",
    "Micronesia",
    "Polynesia",
]

# Public recursive resolvers grouped by the region they answer from.
# Answers from geo-aware authoritative servers differ per group.
DNS_RESOLVERS: dict[str, list[str]] = {
    "Eastern Asia": ["223.5.5.5", "119.29.29.29", "168.126.63.1"],
    "South-eastern Asia": ["203.176.135.180"],
    "Northern America": ["8.8.8.8", "1.1.1.1", "9.9.9.9"],
    "Western Europe": ["194.242.2.2", "84.200.69.80"],
    "Eastern Europe": ["77.88.8.8"],
    "Australia and New Zealand": ["61.8.0.113"],
}
DNS_TIMEOUT = 5.0

# Persisted config/cache file
CONFIG_ENV_VAR = "IMAGEHOUND_CONFIG"
DEFAULT_CONFIG_NAME = ".imagehound.yaml"

# How long closing a race waits for cancelled attempts to unwind
CANCEL_GRACE = 1.0
