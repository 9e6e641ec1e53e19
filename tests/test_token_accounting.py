import math
import unittest

from chat_context.token_accounting import (
    PREVIEW_LINES,
    compute_preview_metadata,
    estimate_tokens,
    get_tokenizer_type,
)


class EstimateTokensTests(unittest.TestCase):
    def test_empty_content_is_zero(self) -> None:
        self.assertEqual(0, estimate_tokens("", "default"))
        self.assertEqual(0, estimate_tokens("", "deepseek"))

    def test_default_is_four_characters_per_token(self) -> None:
        self.assertEqual(1, estimate_tokens("abcd"))
        self.assertEqual(2, estimate_tokens("abcde"))

    def test_deepseek_weights_cjk_higher(self) -> None:
        self.assertEqual(math.ceil(10 * 0.3), estimate_tokens("a" * 10, "deepseek"))
        self.assertEqual(math.ceil(10 * 0.6), estimate_tokens("中" * 10, "deepseek"))

    def test_tokenizer_type_from_model(self) -> None:
        self.assertEqual("deepseek", get_tokenizer_type("deepseek-chat"))
        self.assertEqual("default", get_tokenizer_type("claude-sonnet-4-5"))
        self.assertEqual("default", get_tokenizer_type(None))


class ComputePreviewMetadataTests(unittest.TestCase):
    def test_fresh_content_populates_full_and_preview_slots(self) -> None:
        content = "\n".join(f"line {i}" for i in range(120))
        meta = compute_preview_metadata(content, "default")

        self.assertEqual(120, meta.line_count)
        self.assertEqual(len(content.encode("utf-8")), meta.byte_length)
        self.assertEqual({"default", "default_preview"}, set(meta.token_count_map))
        self.assertEqual(estimate_tokens(content), meta.token_count_map["default"])
        preview = "\n".join(content.split("\n")[:PREVIEW_LINES])
        self.assertEqual(estimate_tokens(preview), meta.token_count_map["default_preview"])
        self.assertEqual(set(meta.token_count_map), set(meta.token_calculated_at))

    def test_existing_full_slot_is_kept_and_preview_refreshed(self) -> None:
        content = "hello\nworld"
        meta = compute_preview_metadata(
            content,
            "default",
            {"default": 999, "default_preview": 1},
            {"default": 5, "default_preview": 5},
        )
        self.assertEqual(999, meta.token_count_map["default"])
        self.assertEqual(5, meta.token_calculated_at["default"])
        self.assertEqual(estimate_tokens(content), meta.token_count_map["default_preview"])
        self.assertGreater(meta.token_calculated_at["default_preview"], 5)

    def test_second_tokenizer_extends_the_map(self) -> None:
        content = "some text"
        first = compute_preview_metadata(content, "default")
        second = compute_preview_metadata(content, "deepseek", first.token_count_map, first.token_calculated_at)

        self.assertEqual(
            {"default", "default_preview", "deepseek", "deepseek_preview"},
            set(second.token_count_map),
        )
        self.assertEqual(first.token_count_map["default"], second.token_count_map["default"])
        self.assertEqual(first.token_calculated_at["default"], second.token_calculated_at["default"])

    def test_inputs_are_not_mutated(self) -> None:
        existing = {"default": 3}
        compute_preview_metadata("abc", "deepseek", existing, {})
        self.assertEqual({"default": 3}, existing)

    def test_single_line_and_byte_length_for_multibyte(self) -> None:
        meta = compute_preview_metadata("中文", "default")
        self.assertEqual(1, meta.line_count)
        self.assertEqual(6, meta.byte_length)


if __name__ == "__main__":
    unittest.main()
