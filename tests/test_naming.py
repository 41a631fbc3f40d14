import random
import re
from datetime import datetime

from core.storage.naming import ALPHABET, generate_key, random_string, timestamp, unique_file_name

NOW = datetime(2023, 6, 8, 10, 15, 30, 123000)


def test_timestamp_has_milliseconds():
    assert timestamp(NOW) == "20230608101530123"


def test_unique_file_name_keeps_stem_and_extension():
    assert unique_file_name("pic.jpg", now=NOW) == "pic 20230608101530123.jpg"


def test_unique_file_name_for_generic_clipboard_names():
    assert unique_file_name("image.png", now=NOW) == "Pasted image 20230608101530123.png"
    assert unique_file_name("My Image.webp", now=NOW) == "Pasted image 20230608101530123.webp"
    assert unique_file_name("blob", now=NOW) == "Pasted image 20230608101530123.png"


def test_unique_file_name_without_extension_defaults_to_png():
    assert unique_file_name("notes", now=NOW) == "notes 20230608101530123.png"


def test_unique_file_name_only_strips_last_extension():
    assert unique_file_name("archive.tar.gz", now=NOW) == "archive.tar 20230608101530123.gz"


def test_generate_key_date_path():
    assert generate_key("/{year}/{mon}/{day}/{filename}", "pic.jpg", now=NOW) == (
        "/2023/06/08/pic 20230608101530123.jpg"
    )


def test_generate_key_empty_template_is_unique_name():
    assert generate_key("", "pic.jpg", now=NOW) == "pic 20230608101530123.jpg"
    assert generate_key(None, "pic.jpg", now=NOW) == "pic 20230608101530123.jpg"
    assert generate_key("   ", "pic.jpg", now=NOW) == "pic 20230608101530123.jpg"


def test_generate_key_replaces_every_occurrence():
    key = generate_key("{year}/{year}-{mon}/{filename}", "a.png", now=NOW)
    assert key == "2023/2023-06/a 20230608101530123.png"


def test_generate_key_random_token():
    key = generate_key("img/{random}/{filename}", "a.png", now=NOW, rng=random.Random(7))
    match = re.fullmatch(r"img/([A-Za-z0-9]{20})/a 20230608101530123\.png", key)
    assert match is not None


def test_generate_key_leaves_unknown_tokens():
    assert generate_key("{bucket}/{filename}", "a.png", now=NOW) == "{bucket}/a 20230608101530123.png"


def test_random_string_alphabet_and_length():
    value = random_string(rng=random.Random(1))
    assert len(value) == 20
    assert set(value) <= set(ALPHABET)
    assert len(ALPHABET) == 62
