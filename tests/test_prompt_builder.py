from chat_context.models import ContentPart, MessageFile, MessageLink, create_message
from chat_context.prompt_builder import build_prompt, message_from_prompt
from tests.storage.base import StoreTestCase


class BuildPromptTests(StoreTestCase):
    def test_system_prompt_is_added_when_session_has_none(self) -> None:
        prompt = build_prompt("Be brief.", [create_message("user", "hi")], self._store)
        self.assertEqual({"role": "system", "content": "Be brief."}, prompt[0])
        self.assertEqual([{"type": "text", "text": "hi"}], prompt[1]["content"])

    def test_session_system_message_wins(self) -> None:
        messages = [create_message("system", "From session"), create_message("user", "hi")]
        prompt = build_prompt("Default", messages, self._store)
        self.assertEqual([{"role": "system", "content": "From session"}], prompt[:1])
        self.assertEqual(2, len(prompt))

    def test_attachments_are_resolved_from_the_store(self) -> None:
        self._store.set_blob("file:abc", "file body")
        self._store.set_blob("link:def", "page body")
        message = create_message("user", "summarize")
        message.files.append(MessageFile(id="f", name="notes.txt", storage_key="file:abc"))
        message.links.append(MessageLink(id="l", url="https://example.com", title="Example", storage_key="link:def"))

        blocks = build_prompt(None, [message], self._store)[0]["content"]

        self.assertEqual("summarize", blocks[0]["text"])
        self.assertIn("<FILE_NAME>notes.txt</FILE_NAME>", blocks[1]["text"])
        self.assertIn("file body", blocks[1]["text"])
        self.assertIn("<LINK_TITLE>Example</LINK_TITLE>", blocks[2]["text"])
        self.assertIn("page body", blocks[2]["text"])

    def test_missing_attachment_content_is_skipped(self) -> None:
        message = create_message("user", "hi")
        message.files.append(MessageFile(id="f", name="gone.txt", storage_key="file:missing"))

        blocks = build_prompt(None, [message], self._store)[0]["content"]

        self.assertEqual([{"type": "text", "text": "hi"}], blocks)

    def test_stored_images_become_base64_blocks(self) -> None:
        self._store.set_blob("picture:1", "data:image/png;base64,iVBORw0KGgo=")
        message = create_message("user", "look")
        message.content_parts.append(ContentPart(type="image", storage_key="picture:1"))

        blocks = build_prompt(None, [message], self._store)[0]["content"]

        self.assertEqual(
            {"type": "image", "source": {"type": "base64", "media_type": "image/png", "data": "iVBORw0KGgo="}},
            blocks[1],
        )

    def test_messages_without_content_are_dropped(self) -> None:
        prompt = build_prompt(None, [create_message("assistant"), create_message("user", "q")], self._store)
        self.assertEqual(["user"], [m["role"] for m in prompt])


class MessageFromPromptTests(StoreTestCase):
    def test_tool_use_and_results_are_kept(self) -> None:
        assistant = message_from_prompt(
            {
                "role": "assistant",
                "content": [
                    {"type": "text", "text": "checking"},
                    {"type": "tool_use", "id": "t1", "name": "search_sessions", "input": {"query": "x"}},
                ],
            }
        )
        tool = message_from_prompt(
            {"role": "tool", "content": [{"type": "tool_result", "tool_use_id": "t1", "content": "none", "is_error": True}]}
        )

        self.assertEqual(["text", "tool_use"], [p.type for p in assistant.content_parts])
        self.assertEqual({"query": "x"}, assistant.content_parts[1].input)
        self.assertEqual("tool", tool.role)
        self.assertTrue(tool.content_parts[0].is_error)

    def test_tool_exchange_round_trips_into_the_prompt(self) -> None:
        entries = [
            {"role": "assistant", "content": [{"type": "tool_use", "id": "t1", "name": "n", "input": {}}]},
            {"role": "tool", "content": [{"type": "tool_result", "tool_use_id": "t1", "content": "r"}]},
        ]
        messages = [message_from_prompt(e) for e in entries]
        self.assertEqual(entries, build_prompt(None, messages, self._store))
