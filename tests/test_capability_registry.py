import unittest

from toolchat.capability_registry import CapabilityGroup, CapabilityRegistry, RegistryFactory
from toolchat.errors import DuplicateCapabilityError

from tests.fakes import FakeTool


class CapabilityRegistryTests(unittest.TestCase):
    def test_register_and_lookup(self) -> None:
        registry = CapabilityRegistry()
        registry.register("filesystem", [FakeTool("read_file"), FakeTool("write_file")])
        registry.register("git", [FakeTool("git")])

        self.assertEqual(["read_file", "write_file", "git"], registry.names())
        self.assertEqual(["git"], registry.group_names("git"))
        self.assertEqual("filesystem", registry.group_of("write_file"))
        self.assertIn("git", registry)
        self.assertIsNone(registry.get("missing"))

    def test_duplicate_name_is_rejected(self) -> None:
        registry = CapabilityRegistry()
        registry.register("filesystem", [FakeTool("read_file")])

        with self.assertRaises(DuplicateCapabilityError) as ctx:
            registry.register("mcp", [FakeTool("read_file")])
        self.assertIn('"filesystem"', str(ctx.exception))

    def test_subset_keeps_registry_order_and_ignores_unknown(self) -> None:
        registry = CapabilityRegistry()
        registry.register("a", [FakeTool("one"), FakeTool("two"), FakeTool("three")])

        subset = registry.subset(["three", "ghost", "one"])

        self.assertEqual(["one", "three"], [t.name for t in subset])

    def test_descriptors(self) -> None:
        registry = CapabilityRegistry()
        registry.register("a", [FakeTool("one", "First tool", {"type": "object"})])

        descriptor = registry.descriptors()[0]

        self.assertEqual("one", descriptor.name)
        self.assertEqual("First tool", descriptor.description)
        self.assertEqual({"type": "object"}, descriptor.input_schema)


class RegistryFactoryTests(unittest.TestCase):
    def test_default_groups_without_optional_collaborators(self) -> None:
        registry = RegistryFactory().build("/tmp")

        self.assertEqual(["filesystem", "git", "code", "url", "thinking"], registry.groups())
        self.assertEqual(
            ["read_file", "write_file", "append_file", "list_directory"],
            registry.group_names("filesystem"),
        )
        self.assertNotIn("web_search", registry)

    def test_optional_groups_enable_with_their_collaborators(self) -> None:
        mcp_tool = FakeTool("notes__search")
        registry = RegistryFactory(
            provider=object(),
            model="m",
            brave_api_key="key",
            mcp_tools=[mcp_tool],
        ).build("/tmp")

        self.assertEqual(["web_search"], registry.group_names("web_search"))
        self.assertEqual(["brainstorm"], registry.group_names("brainstorm"))
        self.assertEqual(["notes__search"], registry.group_names("mcp"))

    def test_custom_groups_receive_working_directory(self) -> None:
        seen: list[str] = []

        def build(ctx: dict) -> list:
            seen.append(ctx["working_directory"])
            return [FakeTool("probe")]

        factory = RegistryFactory(groups=[CapabilityGroup("probe", lambda ctx: True, build)])
        registry = factory.build("/work/project")

        self.assertEqual(["/work/project"], seen)
        self.assertEqual(["probe"], registry.names())


if __name__ == "__main__":
    unittest.main()
