import asyncio
import unittest

from multi_llm.errors import MissingCredentialError, UnsupportedProviderError
from multi_llm.providers import KimiProvider, VolcengineProvider
from multi_llm.registry import AdapterRegistry, create_provider


class FactoryTests(unittest.TestCase):
    def test_creates_variant_for_each_id(self) -> None:
        provider = create_provider("kimi", "sk-1")
        self.assertIsInstance(provider, KimiProvider)
        self.assertEqual(provider.config.base_url, "https://api.moonshot.cn/v1")

    def test_alias_and_case(self) -> None:
        self.assertIsInstance(create_provider("doubao", "sk-1"), VolcengineProvider)
        self.assertIsInstance(create_provider(" Kimi ", "sk-1"), KimiProvider)

    def test_unknown_provider(self) -> None:
        with self.assertRaises(UnsupportedProviderError):
            create_provider("openai", "sk-1")

    def test_blank_key(self) -> None:
        with self.assertRaises(ValueError):
            create_provider("kimi", "   ")


class RegistryTests(unittest.TestCase):
    def test_lookup_and_removal(self) -> None:
        registry = AdapterRegistry()
        with self.assertRaises(MissingCredentialError):
            registry.get("kimi")

        self.assertIsNone(registry.set_credential("kimi", "sk-1"))
        first = registry.get("kimi")
        replaced = registry.set_credential("kimi", "sk-2")
        self.assertIs(replaced, first)
        self.assertIsNot(registry.get("kimi"), first)

        self.assertIsNotNone(registry.set_credential("kimi", ""))
        self.assertFalse(registry.has("kimi"))

    def test_lookups_ignore_case_and_aliases(self) -> None:
        registry = AdapterRegistry()
        registry.set_credential("DeepSeek", "sk-1")
        self.assertIs(registry.get("DEEPSEEK"), registry.get(" deepseek "))
        self.assertTrue(registry.has("DeepSeek"))

        registry.set_credential("Doubao", "sk-2")
        self.assertIsInstance(registry.get("volcengine"), VolcengineProvider)
        self.assertIsNotNone(registry.remove("DOUBAO"))
        self.assertFalse(registry.has("volcengine"))

    def test_status_lists_every_known_provider(self) -> None:
        registry = AdapterRegistry()
        registry.set_credential("bigmodel", "sk-1")
        status = registry.status()
        self.assertEqual(
            set(status),
            {"deepseek", "aliyun", "volcengine", "kimi", "claude", "bigmodel"},
        )
        self.assertEqual([name for name, ok in status.items() if ok], ["bigmodel"])

    def test_aclose_empties_registry(self) -> None:
        async def scenario() -> AdapterRegistry:
            registry = AdapterRegistry()
            registry.set_credential("claude", "sk-1")
            await registry.aclose()
            return registry

        registry = asyncio.run(scenario())
        self.assertFalse(registry.has("claude"))


if __name__ == "__main__":
    unittest.main()
