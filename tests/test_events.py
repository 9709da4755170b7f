import json
import unittest

from toolchat import events


class ServerEventTests(unittest.TestCase):
    def test_text_payload_lines_become_data_lines(self) -> None:
        encoded = events.message("line one\nline two").encode()
        self.assertEqual("event: message\ndata: line one\ndata: line two\n\n", encoded)

    def test_complete_payload_is_json(self) -> None:
        encoded = events.complete([{"url": "https://example.com"}], "s1").encode()
        self.assertTrue(encoded.startswith("event: complete\ndata: "))
        payload = json.loads(encoded.split("data: ", 1)[1])
        self.assertEqual({"sources": [{"url": "https://example.com"}], "sessionId": "s1"}, payload)

    def test_close_and_update_prompt(self) -> None:
        self.assertEqual("event: close\ndata: \n\n", events.close().encode())
        self.assertEqual(events.UPDATE_PROMPT, events.update_prompt("File tree:").event)


if __name__ == "__main__":
    unittest.main()
