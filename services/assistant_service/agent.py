from langchain_core.prompts import ChatPromptTemplate
from langchain_openai import ChatOpenAI

from shared.config.settings import ASSISTANT_MODEL, OPENAI_API_KEY

# -------------------------------
# FARMING ASSISTANT
# -------------------------------
assistant_prompt = ChatPromptTemplate.from_messages([
    (
        "system",
        """
You are a helpful farming assistant for an agricultural marketplace where
farmers list crops and buyers purchase them.

Rules:
1. Respond in a friendly and concise way.
2. Stay on farming and marketplace topics: crops, growing techniques,
   listing and selling produce, buying, pricing, orders and delivery.
3. Never invent order ids, prices or stock levels. Point the user to their
   dashboard for anything account specific.
        """,
    ),
    ("human", "{message}"),
])


def build_llm(api_key: str = OPENAI_API_KEY, model: str = ASSISTANT_MODEL) -> ChatOpenAI:
    return ChatOpenAI(model=model, temperature=0.3, api_key=api_key)
