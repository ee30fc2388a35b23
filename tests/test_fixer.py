"""
Tests for fix authoring.
"""
import pytest
from pydantic import ValidationError

from hotfix_sentinel.classification import CallableFixAuthor, FixProposal, LLMFixAuthor
from hotfix_sentinel.classification.fixer import parse_fix_response
from hotfix_sentinel.exceptions import FixGenerationError, LLMError
from hotfix_sentinel.llm import LLMProvider, LLMResponse
from hotfix_sentinel.models import CodeFixable, Evidence

INCIDENT = CodeFixable(
    file_path_hint="app/handlers.py",
    summary="KeyError at handlers.py:17",
    root_cause="item has no price",
)

FIX_ANSWER = """COMMIT_MESSAGE: Default missing cart item price to zero
FIX_SUMMARY: Use dict.get for the optional price field.
<<<FILE
def add_to_cart(item):
    price = item.get("price", 0)
FILE>>>"""


class CannedProvider(LLMProvider):
    name = "Canned"

    def __init__(self, content: str = FIX_ANSWER, finish_reason: str = "stop", error: Exception = None):
        super().__init__(model="canned-1")
        self.content = content
        self.finish_reason = finish_reason
        self.error = error
        self.calls = []

    def complete(self, messages, temperature=0.0, max_tokens=None) -> LLMResponse:
        self.calls.append({"messages": messages, "temperature": temperature, "max_tokens": max_tokens})
        if self.error:
            raise self.error
        return LLMResponse(content=self.content, model=self.model, finish_reason=self.finish_reason)


def test_fix_proposal_requires_commit_message() -> None:
    with pytest.raises(ValidationError):
        FixProposal(new_content="x", commit_message="   ")


def test_callable_author_wraps_string() -> None:
    """Test a plain string result gets a derived commit message."""
    author = CallableFixAuthor(lambda c, path, content, evidence: content + "# fixed\n")

    proposal = author.propose_fix(INCIDENT, "app/handlers.py", "x = 1\n", [])

    assert proposal.new_content == "x = 1\n# fixed\n"
    assert proposal.commit_message == "Hotfix: KeyError at handlers.py:17"


def test_callable_author_passes_proposal_through() -> None:
    expected = FixProposal(new_content="y", commit_message="Fix y")
    author = CallableFixAuthor(lambda *args: expected)

    assert author.propose_fix(INCIDENT, "a.py", "x", []) is expected


def test_callable_author_rejects_other_results() -> None:
    author = CallableFixAuthor(lambda *args: None)

    with pytest.raises(FixGenerationError):
        author.propose_fix(INCIDENT, "a.py", "x", [])


def test_parse_fix_response() -> None:
    proposal = parse_fix_response(FIX_ANSWER)

    assert proposal.commit_message == "Default missing cart item price to zero"
    assert proposal.fix_summary == "Use dict.get for the optional price field."
    assert proposal.new_content == 'def add_to_cart(item):\n    price = item.get("price", 0)\n'


def test_parse_fix_response_without_file_block() -> None:
    with pytest.raises(FixGenerationError, match="FILE"):
        parse_fix_response("COMMIT_MESSAGE: nothing to do")


def test_parse_fix_response_without_commit_message() -> None:
    with pytest.raises(FixGenerationError):
        parse_fix_response("<<<FILE\nx = 1\nFILE>>>")


def test_llm_author_prompt_contains_file_and_logs() -> None:
    provider = CannedProvider()
    author = LLMFixAuthor(provider, max_tokens=4000)

    proposal = author.propose_fix(
        INCIDENT, "app/handlers.py", 'price = item["price"]\n', [Evidence.from_text("KeyError: 'price'")]
    )

    call = provider.calls[0]
    user_prompt = call["messages"][1].content
    assert "## File: app/handlers.py" in user_prompt
    assert 'price = item["price"]' in user_prompt
    assert "KeyError: 'price'" in user_prompt
    assert call["max_tokens"] == 4000
    assert proposal.commit_message.startswith("Default missing")


def test_llm_author_truncated_answer() -> None:
    """Test a token-limited answer is never committed."""
    author = LLMFixAuthor(CannedProvider(finish_reason="length"))

    with pytest.raises(FixGenerationError, match="truncated"):
        author.propose_fix(INCIDENT, "a.py", "x", [])


def test_llm_author_provider_error() -> None:
    author = LLMFixAuthor(CannedProvider(error=LLMError("boom")))

    with pytest.raises(FixGenerationError, match="unreachable"):
        author.propose_fix(INCIDENT, "a.py", "x", [])
