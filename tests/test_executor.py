"""Tests for job execution."""

import pytest

from vectorize.common.errors import MalformedJobError, ProviderError
from vectorize.transformers import Transformer
from vectorize.workers import execute_job

JOIN_TABLE = '"public"."product_search_embeddings"'
APPEND_TABLE = '"public"."products"'


@pytest.mark.asyncio
async def test_openai_job_with_three_inputs(pool, dispatcher, message_factory):
    message = message_factory(transformer="text-embedding-ada-002", keys=("1", "2", "3"))

    written = await execute_job(pool, message, dispatcher)

    assert written == 3
    request = dispatcher.requests[0]
    assert request.transformer is Transformer.OPENAI
    assert request.payload.model == "text-embedding-ada-002"
    assert request.payload.input == ["product 1", "product 2", "product 3"]
    assert sorted(pool.tables[JOIN_TABLE]) == ["1", "2", "3"]


@pytest.mark.asyncio
async def test_generic_transformer(pool, dispatcher, message_factory):
    await execute_job(pool, message_factory(), dispatcher)
    assert dispatcher.requests[0].transformer is Transformer.GENERIC


@pytest.mark.asyncio
async def test_provider_error_writes_nothing(pool, failing_dispatcher, message_factory):
    with pytest.raises(ProviderError):
        await execute_job(pool, message_factory(), failing_dispatcher)
    assert pool.statements == []


@pytest.mark.asyncio
async def test_reordered_results_are_paired_by_key(pool, reordering_dispatcher, message_factory):
    await execute_job(pool, message_factory(keys=("10", "20", "30")), reordering_dispatcher)

    # input at position i gets [i, i + 0.5] whatever order the provider used
    assert pool.tables[JOIN_TABLE] == {
        "10": "[0.0,0.5]",
        "20": "[1.0,1.5]",
        "30": "[2.0,2.5]",
    }


@pytest.mark.asyncio
async def test_join_method_issues_single_upsert(pool, dispatcher, message_factory):
    await execute_job(pool, message_factory(table_method="join"), dispatcher)

    assert len(pool.statements) == 1
    query, args = pool.statements[0]
    assert query.startswith(f"INSERT INTO {JOIN_TABLE}")
    assert "$1::text::integer" in query
    assert len(args) == 4


@pytest.mark.asyncio
async def test_append_method_updates_each_row(pool, dispatcher, message_factory):
    await execute_job(pool, message_factory(table_method="append", keys=("1", "2", "3")), dispatcher)

    assert len(pool.statements) == 3
    assert all(query.startswith(f"UPDATE {APPEND_TABLE}") for query, _ in pool.statements)
    assert [args[1] for _, args in pool.statements] == ["1", "2", "3"]


@pytest.mark.asyncio
async def test_join_replay_keeps_one_row_per_key(pool, dispatcher, message_factory):
    message = message_factory(table_method="join")
    await execute_job(pool, message, dispatcher)
    await execute_job(pool, message, dispatcher)

    assert pool.tables[JOIN_TABLE] == {"1": "[0.0,0.5]", "2": "[1.0,1.5]"}
    assert len(pool.statements) == 2


@pytest.mark.asyncio
async def test_append_replay_is_stable(pool, dispatcher, message_factory):
    message = message_factory(table_method="append")
    await execute_job(pool, message, dispatcher)
    first = {key: dict(row) for key, row in pool.tables[APPEND_TABLE].items()}

    await execute_job(pool, message, dispatcher)
    assert pool.tables[APPEND_TABLE] == first


@pytest.mark.asyncio
async def test_malformed_params(pool, dispatcher, message_factory):
    message = message_factory()
    del message.message["job_meta"]["params"]["primary_key"]

    with pytest.raises(MalformedJobError):
        await execute_job(pool, message, dispatcher)
    assert dispatcher.requests == []


@pytest.mark.asyncio
async def test_unknown_table_method(pool, dispatcher, message_factory):
    with pytest.raises(MalformedJobError):
        await execute_job(pool, message_factory(table_method="sideways"), dispatcher)


@pytest.mark.asyncio
async def test_append_requires_table(pool, dispatcher, message_factory):
    with pytest.raises(MalformedJobError):
        await execute_job(pool, message_factory(table_method="append", table=None), dispatcher)


@pytest.mark.asyncio
async def test_malformed_envelope(pool, dispatcher, message_factory):
    message = message_factory()
    message.message.pop("job_meta")

    with pytest.raises(MalformedJobError):
        await execute_job(pool, message, dispatcher)


@pytest.mark.asyncio
async def test_unsafe_identifier_rejected_before_provider_call(pool, dispatcher, message_factory):
    message = message_factory(schema="public; DROP TABLE products")

    with pytest.raises(MalformedJobError):
        await execute_job(pool, message, dispatcher)
    assert dispatcher.requests == []
    assert pool.statements == []


@pytest.mark.asyncio
async def test_empty_inputs_skip_provider(pool, dispatcher, message_factory):
    assert await execute_job(pool, message_factory(keys=()), dispatcher) == 0
    assert dispatcher.requests == []
    assert pool.statements == []


@pytest.mark.asyncio
async def test_long_project_name_writes_truncated_table(pool, dispatcher, message_factory):
    message = message_factory()
    message.message["job_meta"]["name"] = "p" * 55

    assert await execute_job(pool, message, dispatcher) == 2
    assert sorted(pool.tables[f'"public"."{"p" * 55}_embeddi"']) == ["1", "2"]


@pytest.mark.asyncio
async def test_join_ignores_source_primary_key_name(pool, dispatcher, message_factory):
    message = message_factory(table_method="join", primary_key="product-id")

    assert await execute_job(pool, message, dispatcher) == 2
    assert sorted(pool.tables[JOIN_TABLE]) == ["1", "2"]


@pytest.mark.asyncio
async def test_append_rejects_unsafe_primary_key(pool, dispatcher, message_factory):
    message = message_factory(table_method="append", primary_key="product-id")

    with pytest.raises(MalformedJobError):
        await execute_job(pool, message, dispatcher)
    assert dispatcher.requests == []


@pytest.mark.asyncio
async def test_missing_inputs_is_malformed(pool, dispatcher, message_factory):
    message = message_factory()
    message.message.pop("inputs")

    with pytest.raises(MalformedJobError):
        await execute_job(pool, message, dispatcher)
    assert pool.statements == []
