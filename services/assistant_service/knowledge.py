"""
Canned farming and marketplace answers, used when the language model is not
reachable. Topics are checked in order; the first match wins.
"""
import re

NO_CONNECTION = (
    "I apologize, but I'm having trouble connecting to my knowledge base. "
    "Please try again later or contact our support team."
)

BASIC_RESPONSES = {
    "greeting": "Hello! I'm your farming assistant. How can I help you today?",
    "product_info": "I can help you find information about our agricultural products. What would you like to know?",
    "order_tracking": "To track your order, please provide your order ID or check your dashboard.",
    "farming_advice": "I can provide general farming advice. What specific topic would you like to learn about?",
    "marketplace": (
        "Our marketplace offers a variety of agricultural products. "
        "You can browse by category or use the search feature."
    ),
    "default": "I understand you're interested in farming and agriculture. How can I assist you with your specific needs?",
}

# (keywords, answer); crops first, then techniques, then marketplace topics
FARMING_KNOWLEDGE = (
    (("wheat",), "Wheat is a staple crop that requires well-drained soil and moderate rainfall. "
                 "Best planted in early spring or fall."),
    (("rice",), "Rice grows best in flooded fields or paddies. It requires warm temperatures and plenty of water."),
    (("corn",), "Corn needs rich soil and regular watering. Plant in spring after the last frost."),
    (("vegetable",), "Most vegetables need well-draining soil, regular watering, and 6-8 hours of sunlight daily."),
    (("organic",), "Organic farming avoids synthetic inputs and focuses on natural methods like crop rotation "
                   "and composting."),
    (("irrigation", "water"), "Proper irrigation is crucial. Consider drip irrigation for water efficiency."),
    (("pest", "insect"), "Integrated pest management combines biological, cultural, and chemical methods "
                         "for effective pest control."),
    (("sell", "listing"), "To sell your products, create a detailed listing with clear photos and "
                          "accurate descriptions."),
    (("buy", "purchase"), "When buying, check product ratings, reviews, and seller history for reliability."),
    (("price", "cost"), "Research market prices and consider your production costs when setting prices."),
)

BASIC_TOPICS = (
    (("hello", r"\bhi\b"), "greeting"),
    (("product", "item"), "product_info"),
    (("order", "track"), "order_tracking"),
    (("farm", "grow", "crop"), "farming_advice"),
    (("market", "shop", "store"), "marketplace"),
)


def _mentions(text: str, keywords) -> bool:
    return any(re.search(k, text) if k.startswith("\\") else k in text for k in keywords)


def basic_response(message: str) -> str:
    text = message.lower()
    for keywords, topic in BASIC_TOPICS:
        if _mentions(text, keywords):
            return BASIC_RESPONSES[topic]
    return BASIC_RESPONSES["default"]


def fallback_response(message: str) -> str:
    """Most specific canned answer for the message."""
    text = message.lower()
    for keywords, answer in FARMING_KNOWLEDGE:
        if _mentions(text, keywords):
            return answer
    return basic_response(message)
