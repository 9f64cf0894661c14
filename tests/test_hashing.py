import functools
import re

import numpy as np

from reprodata.core.dataset import Dataset
from reprodata.core.hashing import (
    canonicalize,
    combine,
    combine_all,
    from_dataset,
    generate,
    sample_records,
)


def upcase(record):
    return {**record, "text": record["text"].upper()}


def downcase(record):
    return {**record, "text": record["text"].lower()}


def scale(record, factor):
    return {**record, "x": record["x"] * factor}


HEX64 = re.compile(r"^[0-9a-f]{64}$")


def test_generate_is_idempotent():
    fp1 = generate("map", [upcase], {"batched": True})
    fp2 = generate("map", [upcase], {"batched": True})
    assert fp1 == fp2
    assert HEX64.match(fp1)


def test_generate_distinguishes_operation_args_and_options():
    base = generate("map", [upcase], {})
    assert generate("filter", [upcase], {}) != base
    assert generate("map", [downcase], {}) != base
    assert generate("map", [], {"batched": True}) != generate("map", [], {"batched": False})


def test_generate_ignores_option_order():
    fp1 = generate("map", [], {"batched": True, "batch_size": 10})
    fp2 = generate("map", [], {"batch_size": 10, "batched": True})
    assert fp1 == fp2


def test_generate_strips_meta_options():
    plain = generate("map", [upcase], {"batched": False})
    with_meta = generate(
        "map", [upcase],
        {"batched": False, "new_fingerprint": "f" * 64, "cache_file_name": "/tmp/x.cache"},
    )
    assert plain == with_meta


def test_generate_accepts_unhashable_values():
    class Opaque:
        def __str__(self):
            return "opaque"

    fp1 = generate("map", [{"a": [1, {2, 3}]}], {"obj": Opaque()})
    fp2 = generate("map", [{"a": [1, {3, 2}]}], {"obj": Opaque()})
    assert fp1 == fp2


def test_canonicalize_describes_functions():
    desc = canonicalize(upcase)
    assert desc == {
        "type": "function",
        "module": __name__,
        "name": "upcase",
        "arity": 1,
    }


def test_canonicalize_partial_includes_bound_arguments():
    assert canonicalize(functools.partial(scale, factor=2)) != canonicalize(
        functools.partial(scale, factor=3)
    )


def test_canonicalize_numpy_values():
    assert canonicalize(np.int64(3)) == 3
    assert canonicalize(np.array([1, 2])) == [1, 2]


def test_from_dataset_is_deterministic_and_content_sensitive():
    ds = Dataset.from_records([{"x": 1}, {"x": 2}])
    assert from_dataset(ds) == from_dataset(ds)
    assert from_dataset(Dataset.from_records([{"x": 1}])) != from_dataset(
        Dataset.from_records([{"x": 2}])
    )


def test_from_dataset_ignores_metadata_and_key_order():
    a = Dataset.from_records([{"x": 1, "y": 2}], metadata={"source": "a"})
    b = Dataset.from_records([{"y": 2, "x": 1}], metadata={"source": "b"})
    assert from_dataset(a) == from_dataset(b)


def test_from_dataset_samples_head_and_tail():
    records = [{"i": i} for i in range(50)]
    assert sample_records(records) == records[:10] + records[-10:]

    altered = list(records)
    altered[25] = {"i": -1}
    # Middle-only differences are outside the sample
    assert from_dataset(Dataset.from_records(records)) == from_dataset(
        Dataset.from_records(altered)
    )

    altered[0] = {"i": -1}
    assert from_dataset(Dataset.from_records(records)) != from_dataset(
        Dataset.from_records(altered)
    )


def test_from_dataset_depends_on_count():
    records = [{"i": i} for i in range(30)]
    longer = records[:15] + [{"i": "extra"}] + records[15:]
    assert from_dataset(Dataset.from_records(records)) != from_dataset(
        Dataset.from_records(longer)
    )


def test_combine_is_deterministic_and_order_dependent():
    a = generate("a")
    b = generate("b")
    assert combine(a, b) == combine(a, b)
    assert combine(a, b) != combine(b, a)
    assert HEX64.match(combine(a, b))


def test_combine_all():
    a, b, c = generate("a"), generate("b"), generate("c")
    assert combine_all([a, b, c]) == combine(combine(a, b), c)
    assert combine_all([a]) == a
    assert combine_all([]) == generate("empty")


def test_canonicalize_keeps_key_types_apart():
    assert canonicalize({1: "x"}) != canonicalize({"1": "x"})
    assert canonicalize({1: "x"}) == canonicalize({np.int64(1): "x"})
    assert canonicalize({"a": 1}) == {"a": 1}
    assert from_dataset(Dataset.from_records([{1: "x"}])) != from_dataset(
        Dataset.from_records([{"1": "x"}])
    )
