"""
harvest.constants
常量定义：默认选择器、雪花 ID 参数、产物文件名。
"""

DEFAULT_VIEWPORT = {"width": 1280, "height": 900}
HARVEST_FORMAT_VERSION = "v0.1"

# 滚动容器候选（按顺序尝试；命中元素本身不可滚动时取其最近的可滚动祖先）
SCROLLER_SELECTORS = [
    "div[class*='messagesWrapper'] div[class*='scroller']",
    "[data-list-id='chat-messages']",
    "[role='log']",
    "main div[class*='scroller']",
]

# 消息列表容器（第一个命中者即为合并目标）
LIST_SELECTORS = [
    "ol[data-list-id='chat-messages']",
    "[role='log']",
]

# 列表容器内的消息项；无容器时在整个文档中查找
ITEM_SELECTORS = [
    ":scope > li",
    "[id^='chat-messages-']",
    "[data-list-item-id^='chat-messages']",
    "article",
]

PLACEHOLDER_TOKENS = ["skeleton", "placeholder", "spinner", "loading"]

BOUNDARY_PHRASES = [
    "this is the beginning of your direct message history with",
    "beginning of your direct message history",
    "this is the beginning of",
]

HEADER_SELECTORS = [
    "[class*='emptyState']",
    "[class*='emptyChannel']",
    "[class*='emptyStateWrapper']",
    "[class*='emptyChannelIcon']",
    "div[class*='empty']",
    "section[class*='empty']",
]

AVATAR_SELECTORS = [
    "img[class*='avatar']",
    "img[alt*='avatar']",
    "img[class*='Avatar']",
]

BATCH_MARKERS = ["Fetched 50 messages", "isBefore:true"]

# 标识属性（按优先级）
KEY_ATTRS = ["data-list-item-id", "id", "data-message-id", "aria-labelledby"]
ORDER_ID_ATTRS = ["data-list-item-id", "id", "data-message-id"]

MEDIA_SELECTOR = "img, video, source, iframe, embed"
LAZY_SRC_ATTRS = ["data-src", "data-lazy-src", "data-original", "data-lazy"]

# 雪花 ID：(id >> 22) + epoch（毫秒）
SNOWFLAKE_SHIFT = 22
SNOWFLAKE_EPOCH_MS = 1420070400000
SNOWFLAKE_MIN_DIGITS = 17
# 2000-01-01T00:00:00Z，早于此时间的解码结果视为不可信
MIN_PLAUSIBLE_MS = 946684800000
ONE_DAY_MS = 86400000

HEADER_KEY = "\x00header"
HEADER_ORDER = -1
HEADER_SEQUENCE = -1

# 产物文件名映射
ARTIFACTS = {
    "dom_html": "dom.html",
    "meta": "meta.json",
    "records": "records.json",
    "transcript": "transcript.html",
}
