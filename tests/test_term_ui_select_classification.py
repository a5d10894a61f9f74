import contextlib

from prompt_toolkit import PromptSession
from prompt_toolkit.input import create_pipe_input
from prompt_toolkit.output import DummyOutput

from finboard.classification import CLASSIFICATION_TAGS
from finboard.term_ui import collect_classifications, select_classification

TAGS = list(CLASSIFICATION_TAGS)


@contextlib.contextmanager
def pipe_session():
    with create_pipe_input() as pipe:
        sess = PromptSession(input=pipe, output=DummyOutput())
        yield pipe, sess


def test_enter_accepts_the_prefilled_default():
    with pipe_session() as (pipe, sess):
        pipe.send_text("\r")
        result = select_classification("Rent", TAGS, default="Admin Cost", session=sess)
        assert result == "Admin Cost"


def test_exact_tag_is_case_insensitive():
    with pipe_session() as (pipe, sess):
        pipe.send_text("tax cost\r")
        assert select_classification("Income Tax", TAGS, session=sess) == "Tax Cost"


def test_unique_prefix_is_expanded_on_enter():
    with pipe_session() as (pipe, sess):
        # Ctrl-A (home), Ctrl-K (kill to end), then a prefix of "Employment Cost".
        pipe.send_text("\x01\x0bEmp\r")
        result = select_classification("Salaries", TAGS, default="Admin Cost", session=sess)
        assert result == "Employment Cost"


def test_empty_buffer_skips_the_label():
    with pipe_session() as (pipe, sess):
        pipe.send_text("\x01\x0b\r")
        assert select_classification("Rent", TAGS, default="Admin Cost", session=sess) is None


def test_unknown_tag_is_refused_until_corrected():
    with pipe_session() as (pipe, sess):
        pipe.send_text("Bogus\r\x01\x0bFinancing Cost\r")
        assert select_classification("Bank Charges", TAGS, session=sess) == "Financing Cost"


def test_collect_classifications_leaves_skipped_labels_out():
    with pipe_session() as (pipe, sess):
        # Accept the suggestion for the first label, skip the second.
        pipe.send_text("\r\x01\x0b\r")
        chosen = collect_classifications(
            ["Rent", "Mystery Item"],
            TAGS,
            suggestions={"Rent": "Admin Cost", "Mystery Item": "Other Revenue"},
            session=sess,
        )
        assert chosen == {"Rent": "Admin Cost"}
