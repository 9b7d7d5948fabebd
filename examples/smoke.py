import asyncio
import sys

from multi_llm.client import LLMClient
from multi_llm.config import Settings, configure_logging
from multi_llm.types import ChatRequest, Message, StreamEvent

MODELS = {
    "deepseek": "deepseek-chat",
    "aliyun": "qwen-plus",
    "kimi": "moonshot-v1-8k",
}


async def main(prompt: str) -> None:
    settings = Settings()
    configure_logging(settings.log_level)

    async with LLMClient.from_settings(settings) as client:
        configured = [p for p, ok in client.service_status().items() if ok and p in MODELS]
        if not configured:
            print("No API keys found; set DEEPSEEK_API_KEY, ALIYUN_API_KEY or KIMI_API_KEY.")
            return

        async def run(provider: str) -> None:
            req = ChatRequest(model=MODELS[provider], messages=[Message(role="user", content=prompt)])

            def show(event: StreamEvent) -> None:
                if event.type == "content_delta":
                    print(f"[{provider}] {event.text}")

            try:
                resp = await client.send_request_stream(provider, req, show)
            except Exception as e:
                print(f"[{provider}] failed: {e}")
                return
            print(f"[{provider}] done: {resp.tokens} tokens, ${resp.cost:.6f}, {resp.response_time_ms}ms")

        await asyncio.gather(*(run(p) for p in configured))


if __name__ == "__main__":
    asyncio.run(main(" ".join(sys.argv[1:]) or "Say hello in one sentence."))
