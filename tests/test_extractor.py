"""Tests for time/task extraction, including the language-model fallback path."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from eslatma.core.extractor import (
    DEFAULT_TASK,
    MAX_TASK_LENGTH,
    TaskExtractor,
    clean_task,
    find_time,
    has_command_keyword,
    parse_task_json,
)
from eslatma.errors import ExtractionDegraded, NoTimeFound
from eslatma.llm.base import LLMClient
from eslatma.metrics import runtime_metrics


def make_llm(**kwargs) -> MagicMock:
    llm = MagicMock(spec=LLMClient)
    llm.generate_response = AsyncMock(**kwargs)
    return llm


class TestFindTime:
    @pytest.mark.parametrize("text, expected", [
        ("12:00 da darsim bor", (12, 0)),
        ("soat 7.30 da yugurish", (7, 30)),
        ("Ertalab 07:05 da", (7, 5)),
        ("23:59 uxlash", (23, 59)),
        ("0:00 yangi kun", (0, 0)),
    ])
    def test_finds_clock_time(self, text, expected):
        assert find_time(text) == expected

    def test_first_valid_match_wins(self):
        assert find_time("08:00 yoki 09:00 da") == (8, 0)

    def test_invalid_clock_is_skipped(self):
        assert find_time("25:70 emas, 09:15 da") == (9, 15)

    @pytest.mark.parametrize("text", [
        "ertaga darsim bor",
        "12:5 da",
        "",
        "99:99",
    ])
    def test_no_time_raises(self, text):
        with pytest.raises(NoTimeFound):
            find_time(text)


class TestCleanTask:
    def test_reference_example(self):
        assert clean_task("12:00 da darsim bor") == "darsim bor"

    def test_removes_filler_and_collapses_whitespace(self):
        assert clean_task("Soat 18:30 da   Onamga   qo'ng'iroq") == "Onamga qo'ng'iroq"

    def test_postposition_only_as_standalone_word(self):
        assert clean_task("19:00 da dadam keladi") == "dadam keladi"

    def test_keeps_original_case(self):
        assert clean_task("09:00 da Toshkentga JO'NASH") == "Toshkentga JO'NASH"

    def test_only_time_gives_empty(self):
        assert clean_task("12:00 da") == ""


class TestCommandKeyword:
    @pytest.mark.parametrize("text", [
        "07:00 da menga uyg'onishni eslatib yubor",
        "10:00 da onamga AYT",
        "bildirib qo'y 15:00",
        "xabar ber 11:11",
    ])
    def test_detects_keyword(self, text):
        assert has_command_keyword(text) is True

    def test_plain_text_has_no_keyword(self):
        assert has_command_keyword("12:00 da darsim bor") is False


class TestParseTaskJson:
    def test_plain_json(self):
        assert parse_task_json('{"task": "dars"}') == "dars"

    def test_code_fenced_json(self):
        assert parse_task_json('```json\n{"task": "uyg‘onish"}\n```') == "uyg‘onish"

    def test_json_inside_text(self):
        assert parse_task_json('Mana: {"task": "dori ichish"} tayyor') == "dori ichish"

    @pytest.mark.parametrize("raw", [
        "",
        "Kechirasiz, tushunmadim",
        '{"task": ',
        '{"label": "dars"}',
        '{"task": ""}',
        '{"task": 42}',
        '["dars"]',
    ])
    def test_bad_output_raises(self, raw):
        with pytest.raises(ExtractionDegraded):
            parse_task_json(raw)


class TestTaskExtractor:
    @pytest.mark.asyncio
    async def test_deterministic_without_llm(self):
        result = await TaskExtractor().extract("12:00 da darsim bor")
        assert (result.hour, result.minute, result.task, result.used_llm) == (12, 0, "darsim bor", False)

    @pytest.mark.asyncio
    async def test_default_label_when_nothing_left(self):
        result = await TaskExtractor().extract("soat 12:00 da")
        assert result.task == DEFAULT_TASK

    @pytest.mark.asyncio
    async def test_no_time_raises_before_llm(self):
        llm = make_llm(return_value='{"task": "x"}')
        with pytest.raises(NoTimeFound):
            await TaskExtractor(llm).extract("menga eslatib yubor")
        llm.generate_response.assert_not_called()

    @pytest.mark.asyncio
    async def test_llm_not_called_without_keyword(self):
        llm = make_llm(return_value='{"task": "x"}')
        task, used_llm = await TaskExtractor(llm).derive_task("12:00 da darsim bor")
        assert (task, used_llm) == ("darsim bor", False)
        llm.generate_response.assert_not_called()

    @pytest.mark.asyncio
    async def test_llm_used_with_keyword(self):
        llm = make_llm(return_value='{"task": "uyg‘onish"}')
        task, used_llm = await TaskExtractor(llm).derive_task("07:00 da menga uyg'onishni eslatib yubor")
        assert (task, used_llm) == ("uyg‘onish", True)
        llm.generate_response.assert_awaited_once()
        prompt = llm.generate_response.await_args.args[0][0]["content"]
        assert "07:00 da menga uyg'onishni eslatib yubor" in prompt

    @pytest.mark.asyncio
    async def test_llm_error_falls_back_to_rule(self):
        llm = make_llm(side_effect=RuntimeError("429 RESOURCE_EXHAUSTED"))
        fallbacks_before = runtime_metrics.llm_fallback_count

        task, used_llm = await TaskExtractor(llm).derive_task("07:00 da menga darsni eslatib yubor")

        assert task == "menga darsni eslatib yubor"
        assert used_llm is False
        assert runtime_metrics.llm_fallback_count == fallbacks_before + 1
        llm.generate_response.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_llm_non_json_falls_back_to_rule(self):
        llm = make_llm(return_value="Albatta! Sizga eslataman.")
        task, used_llm = await TaskExtractor(llm).derive_task("18:00 da onamga qo'ng'iroq qilishni ayt")
        assert task == "onamga qo'ng'iroq qilishni ayt"
        assert used_llm is False

    @pytest.mark.asyncio
    async def test_llm_timeout_falls_back_to_rule(self):
        async def slow(*args, **kwargs):
            await asyncio.sleep(5)
            return '{"task": "too late"}'

        llm = MagicMock(spec=LLMClient)
        llm.generate_response = slow

        task, used_llm = await TaskExtractor(llm, llm_timeout_seconds=0.05).derive_task("soat 20:00 da eslat kitob")
        assert task == "eslat kitob"
        assert used_llm is False

    @pytest.mark.asyncio
    async def test_llm_label_is_truncated(self):
        llm = make_llm(return_value='{"task": "%s"}' % ("a" * 500))
        task, _ = await TaskExtractor(llm).derive_task("10:00 da eslat")
        assert len(task) == MAX_TASK_LENGTH
