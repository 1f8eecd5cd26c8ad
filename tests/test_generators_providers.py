# ============================================================================
# GENERATOR & PROVIDER TESTS
# ============================================================================
# EPOCH: 1 - GENERATION CORE
# STATUS: Tests - Reference generator, code checks, providers
# PURPOSE: Verify generated output and scheduler-routed generation
# CREATED: 16 OCT 2026
# ============================================================================
"""
Generator & Provider Tests

Covers:
1. ReferenceGenerator output per category
2. Static checks over generated files
3. LocalGenerationProvider generate/analyze through execute()
4. SchedulerBackedGenerator routing, fallback and provider shortage

Run with:
    pytest tests/test_generators_providers.py -v
"""

import ast
import asyncio
import json

import pytest
import yaml

from core.config import SchedulerDefaults
from core.contracts import ArtifactCategory, TaskKind
from core.errors import GenerationError, ProviderUnavailableError
from core.models.blueprint import (
    BuildSpecification,
    EntityDefinition,
    FieldDefinition,
    FieldType,
    RelationshipDefinition,
)
from core.models.task import Task
from generators import (
    GeneratedFile,
    ReferenceGenerator,
    SchedulerBackedGenerator,
    check_files,
    crud_endpoints,
)
from generators.scheduled import method_for
from orchestrator.scheduler import TaskScheduler
from providers import LocalGenerationProvider, ProviderResult


# ============================================================================
# FIXTURES
# ============================================================================

@pytest.fixture
def shop_spec():
    """Two entities, a many-to-many relationship and an integration secret."""
    return BuildSpecification(
        id="spec-shop",
        name="Shop",
        entities=[
            EntityDefinition(
                name="Category",
                fields=[FieldDefinition(name="title", nullable=False)],
            ),
            EntityDefinition(
                name="Product",
                fields=[
                    FieldDefinition(name="sku", unique=True, nullable=False),
                    FieldDefinition(name="price", type=FieldType.DECIMAL, indexed=True),
                    FieldDefinition(name="status", type=FieldType.ENUM, enum_values=["draft", "live"]),
                    FieldDefinition(name="category_id", type=FieldType.UUID, references="Category"),
                ],
                soft_delete=True,
            ),
        ],
        relationships=[RelationshipDefinition(type="many-to-many", source="Product", target="Category")],
        integrations=[{"name": "stripe", "secrets": ["STRIPE_API_KEY"]}],
        infrastructure={"port": 9000},
    )


def _content(files, path):
    return next(f.content for f in files if f.path == path)


# ============================================================================
# REFERENCE GENERATOR
# ============================================================================

class TestReferenceGenerator:

    def test_schema(self, shop_spec):
        files = ReferenceGenerator().generate_schema(shop_spec)
        sql = _content(files, "schema/001_init.sql")

        assert [f.path for f in files] == ["schema/001_init.sql"]
        assert "CREATE TABLE IF NOT EXISTS categories" in sql
        assert "CREATE TABLE IF NOT EXISTS products" in sql
        assert "sku VARCHAR(255) NOT NULL UNIQUE" in sql
        assert "CHECK (status IN ('draft', 'live'))" in sql
        assert "REFERENCES categories(id)" in sql
        assert "idx_products_price" in sql
        assert "deleted_at TIMESTAMPTZ" in sql
        assert "CREATE TABLE IF NOT EXISTS products_categories" in sql

    def test_backend_manifest(self, shop_spec):
        files = ReferenceGenerator().generate_backend(shop_spec)
        manifest = json.loads(_content(files, "backend/api_manifest.json"))

        assert set(manifest["resources"]) == {"categories", "products"}
        assert all(len(endpoints) == 5 for endpoints in manifest["resources"].values())
        assert "backend/routes/products.py" in [f.path for f in files]
        assert "products_router" in _content(files, "backend/main.py")

    def test_crud_endpoints(self):
        entity = EntityDefinition(name="Invoice", fields=[FieldDefinition(name="number")])
        endpoints = crud_endpoints(entity)

        assert [e["operation"] for e in endpoints] == ["list", "get", "create", "update", "delete"]
        assert endpoints[1]["path"] == "/api/v1/invoices/{id}"

    def test_explicit_table_name(self):
        entity = EntityDefinition(name="Person", table_name="people", fields=[FieldDefinition(name="n")])
        assert crud_endpoints(entity)[0]["path"] == "/api/v1/people"

    def test_frontend_pages(self, shop_spec):
        files = ReferenceGenerator().generate_frontend(shop_spec)
        paths = [f.path for f in files]

        assert paths == ["frontend/pages/categories.html", "frontend/pages/products.html", "frontend/index.html"]
        assert 'href="pages/products.html"' in _content(files, "frontend/index.html")

    def test_infrastructure(self, shop_spec):
        files = ReferenceGenerator().generate_infrastructure(shop_spec)
        compose = yaml.safe_load(_content(files, "docker-compose.yml"))

        assert compose["services"]["app"]["ports"] == ["9000:9000"]
        assert "db" in compose["services"]
        assert "EXPOSE 9000" in _content(files, "Dockerfile")
        assert "# STRIPE_API_KEY=" in _content(files, ".env.example")

    def test_tests_per_entity(self, shop_spec):
        files = ReferenceGenerator().generate_tests(shop_spec)
        assert [f.path for f in files] == ["tests/test_categories_api.py", "tests/test_products_api.py"]
        assert all(f.type == "python" for f in files)

    def test_output_passes_checks(self, shop_spec):
        generator = ReferenceGenerator()
        files = []
        for category in (
            ArtifactCategory.SCHEMA,
            ArtifactCategory.BACKEND,
            ArtifactCategory.FRONTEND,
            ArtifactCategory.INFRASTRUCTURE,
            ArtifactCategory.TESTS,
        ):
            files.extend(getattr(generator, method_for(category))(shop_spec))

        assert check_files(files) == []

    def test_multi_word_entity_is_valid_python(self):
        spec = BuildSpecification(
            name='Shop "v2"',
            entities=[EntityDefinition(name="Order Item", fields=[FieldDefinition(name="qty", type=FieldType.INTEGER)])],
        )
        generator = ReferenceGenerator()
        files = generator.generate_backend(spec) + generator.generate_tests(spec)

        assert "class OrderItemIn(BaseModel):" in _content(files, "backend/routes/order_items.py")
        for file in files:
            if file.type == "python":
                ast.parse(file.content, filename=file.path)

    def test_names_escaped_in_html(self):
        spec = BuildSpecification(
            name="<b>Shop</b>",
            entities=[EntityDefinition(name="A & B", fields=[FieldDefinition(name="<i>")])],
        )
        files = ReferenceGenerator().generate_frontend(spec)
        index = _content(files, "frontend/index.html")
        page = _content(files, "frontend/pages/a_bs.html")

        assert "<h1>&lt;b&gt;Shop&lt;/b&gt;</h1>" in index
        assert ">A &amp; B</a>" in index
        assert "<th>&lt;i&gt;</th>" in page
        assert "<b>" not in index

    def test_documentation_has_no_method(self):
        with pytest.raises(GenerationError):
            method_for(ArtifactCategory.DOCUMENTATION)


# ============================================================================
# CHECKS
# ============================================================================

class TestChecks:

    def test_null_reference(self):
        findings = check_files([GeneratedFile(path="a.js", content="undefined.x", type="javascript")])
        assert [f.rule for f in findings] == ["null-reference"]

    def test_typescript_scanned(self):
        findings = check_files([GeneratedFile(path="a.ts", content="const x = undefined.y;", type="typescript")])
        assert [f.path for f in findings] == ["a.ts"]

    def test_non_script_files_ignored(self):
        files = [
            GeneratedFile(path="m.json", content='{"name": "undefined.io"', type="json"),
            GeneratedFile(path="p.html", content="<h1>undefined.io {draft</h1>", type="html"),
            GeneratedFile(path="t.py", content="STATUS = '{draft'", type="python"),
        ]
        assert check_files(files) == []


# ============================================================================
# LOCAL PROVIDER
# ============================================================================

class TestLocalProvider:

    def test_generate_via_execute(self, shop_spec):
        provider = LocalGenerationProvider(ReferenceGenerator())
        task = Task(
            task_type=TaskKind.CODE_GENERATION,
            input={"category": "schema", "specification": shop_spec.model_dump(mode="json")},
        )

        output = asyncio.run(provider.execute(task))

        assert output["category"] == "schema"
        assert output["files"][0]["path"] == "schema/001_init.sql"
        assert output["metrics"]["files"] == 1
        assert "latency_ms" in output["metrics"]

    def test_invalid_request_raises(self):
        provider = LocalGenerationProvider(ReferenceGenerator())
        task = Task(task_type=TaskKind.CODE_GENERATION, input={"category": "nonsense", "specification": {}})

        with pytest.raises(GenerationError):
            asyncio.run(provider.execute(task))

    def test_review(self):
        provider = LocalGenerationProvider(ReferenceGenerator())
        task = Task(
            task_type=TaskKind.CODE_REVIEW,
            input={"files": [{"path": "x.js", "content": "undefined.y", "type": "javascript"}]},
        )

        output = asyncio.run(provider.execute(task))

        assert output["passed"] is False
        assert output["files_checked"] == 1
        assert output["findings"][0]["rule"] == "null-reference"

    def test_unsupported_task_type(self):
        provider = LocalGenerationProvider(ReferenceGenerator())
        with pytest.raises(GenerationError):
            asyncio.run(provider.execute(Task(task_type="image-generation")))

    def test_describe(self):
        record = LocalGenerationProvider(ReferenceGenerator(), priority=5).describe()

        assert record.provider_id == "local"
        assert record.capabilities == {TaskKind.CODE_GENERATION, TaskKind.CODE_REVIEW}
        assert record.max_concurrent == 4
        assert record.priority == 5
        assert record.name == "Local (reference)"

    def test_failure_result_truncated(self):
        assert len(ProviderResult.failure_result("x" * 5000).error_message) == 2000


# ============================================================================
# SCHEDULER-BACKED GENERATOR
# ============================================================================

class TestSchedulerBackedGenerator:

    def test_routes_through_provider(self, shop_spec):
        async def run():
            scheduler = TaskScheduler(config=SchedulerDefaults(tick_interval_seconds=0.05))
            LocalGenerationProvider(ReferenceGenerator()).register_with(scheduler)
            generator = SchedulerBackedGenerator(scheduler, wait_timeout_seconds=5)
            await scheduler.start()
            try:
                files = await generator.generate_backend(shop_spec)
            finally:
                await scheduler.stop()
            return files, scheduler.get_stats()

        files, stats = asyncio.run(run())
        expected = ReferenceGenerator().generate_backend(shop_spec)
        assert [f.path for f in files] == [f.path for f in expected]
        assert stats.total_completed == 1

    def test_unrouted_category_uses_fallback(self, shop_spec):
        async def run():
            scheduler = TaskScheduler()
            generator = SchedulerBackedGenerator(
                scheduler,
                fallback=ReferenceGenerator(),
                routed=[ArtifactCategory.BACKEND],
            )
            files = await generator.generate_schema(shop_spec)
            return files, scheduler.get_stats()

        files, stats = asyncio.run(run())
        assert files[0].path == "schema/001_init.sql"
        assert stats.total_submitted == 0

    def test_partial_routing_requires_fallback(self):
        async def run():
            SchedulerBackedGenerator(TaskScheduler(), routed=[ArtifactCategory.BACKEND])

        with pytest.raises(ValueError):
            asyncio.run(run())

    def test_no_provider_raises_unavailable(self, shop_spec):
        async def run():
            scheduler = TaskScheduler(config=SchedulerDefaults(tick_interval_seconds=0.05))
            generator = SchedulerBackedGenerator(scheduler, max_retries=1, wait_timeout_seconds=5)
            await scheduler.start()
            try:
                await generator.generate_schema(shop_spec)
            finally:
                await scheduler.stop()

        with pytest.raises(ProviderUnavailableError):
            asyncio.run(run())
