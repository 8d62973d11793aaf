import json
import logging
import tempfile
import unittest
from pathlib import Path

import yaml

from image_now import ImageDocument
from image_now.core.batch_manager import (
    BatchItem,
    BatchTransformProcessor,
    apply_steps,
    load_manifest,
    prepare_batch_items,
    summarize,
)
from .helpers import TrackingEngine, write_image


class TestBatchTransformProcessor(unittest.TestCase):
    def setUp(self) -> None:
        self.temp_dir = tempfile.TemporaryDirectory()
        self.tmp = Path(self.temp_dir.name)
        self.photo = write_image(self.tmp / "photo.jpg", 400, 300)
        self.icon = write_image(self.tmp / "icon.png", 200, 200)
        self.mark = write_image(self.tmp / "mark.png", 10, 10)

    def tearDown(self) -> None:
        self.temp_dir.cleanup()

    def test_apply_steps_runs_in_order(self) -> None:
        document = ImageDocument(self.photo)
        apply_steps(
            document,
            [
                {"op": "crop", "width": 100, "height": 100},
                {"op": "rotate", "degrees": 90},
                {"op": "resize", "width": 50, "height": 50},
                {"op": "watermark", "path": str(self.mark), "position": "bottom_right"},
                {"op": "set_jpeg_quality", "quality": 70},
            ],
        )
        self.assertEqual((document.width, document.height), (50, 50))
        self.assertEqual(document.jpeg_quality, 70)

    def test_apply_steps_rejects_unknown_operations(self) -> None:
        document = ImageDocument(self.photo)
        for step in ({"op": "save"}, {"op": "close"}, {"width": 10}):
            with self.subTest(step=step):
                with self.assertRaises(ValueError):
                    apply_steps(document, [step])
        self.assertFalse(document.closed)

    def test_process_writes_outputs(self) -> None:
        engine = TrackingEngine()
        processor = BatchTransformProcessor(engine=engine)
        items = [
            BatchItem(self.photo, self.tmp / "out" / "photo.jpg", [{"op": "resize", "width": 100, "height": 100}]),
            BatchItem(self.icon, self.tmp / "out" / "icon.png", [{"op": "crop", "width": 32, "height": 16}]),
        ]
        results = processor.process(items)

        self.assertEqual([r.success for r in results], [True, True])
        self.assertEqual((results[0].width, results[0].height), (100, 75))
        self.assertEqual((results[1].width, results[1].height), (32, 16))
        self.assertTrue((self.tmp / "out" / "photo.jpg").exists())
        self.assertTrue((self.tmp / "out" / "icon.png").exists())
        self.assertEqual(engine.live, set())

    def test_failures_are_reported_and_halt_when_configured(self) -> None:
        items = [
            BatchItem(self.tmp / "missing.jpg", self.tmp / "missing_out.jpg"),
            BatchItem(self.photo, self.tmp / "photo_out.jpg"),
        ]
        logging.disable(logging.CRITICAL)
        try:
            results = BatchTransformProcessor().process(items)
            halted = BatchTransformProcessor(config={"batch": {"halt_on_error": True}}).process(items)
        finally:
            logging.disable(logging.NOTSET)

        self.assertEqual([r.success for r in results], [False, True])
        self.assertIn("missing.jpg", results[0].error)
        self.assertEqual(len(halted), 1)
        self.assertEqual(summarize(results), 1)
        self.assertEqual(summarize(results[1:]), 0)

    def test_parallel_processing_preserves_order(self) -> None:
        processor = BatchTransformProcessor(config={"batch": {"max_workers": 3}})
        items = []
        for index in range(5):
            source = write_image(self.tmp / f"image_{index}.png", 60 + index * 10, 40)
            items.append(BatchItem(source, self.tmp / f"result_{index}.png", [{"op": "blur", "blur_factor": 1}]))
        results = processor.process(items)
        self.assertEqual([r.input_path for r in results], [Path(i.input_path) for i in items])
        self.assertEqual([r.width for r in results], [60 + index * 10 for index in range(5)])
        self.assertTrue(all(r.success for r in results))

    def test_empty_batch(self) -> None:
        self.assertEqual(BatchTransformProcessor().process([]), [])

    def test_output_defaults_to_source(self) -> None:
        results = BatchTransformProcessor().process(
            [BatchItem(self.photo, steps=[{"op": "resize", "width": 40, "height": 40}])]
        )
        self.assertEqual(results[0].output_path, self.photo)
        self.assertEqual(ImageDocument(self.photo).width, 40)


class TestManifest(unittest.TestCase):
    def test_load_yaml_and_json_manifests(self) -> None:
        entries = [
            {"input": "a.jpg", "output": "b.jpg", "steps": [{"op": "blur"}]},
            {"input": "c.png"},
        ]
        with tempfile.TemporaryDirectory() as tmp_dir:
            yaml_path = Path(tmp_dir) / "jobs.yaml"
            yaml_path.write_text(yaml.safe_dump(entries), encoding="utf-8")
            json_path = Path(tmp_dir) / "jobs.json"
            json_path.write_text(json.dumps(entries), encoding="utf-8")

            self.assertEqual(load_manifest(yaml_path), entries)
            self.assertEqual(load_manifest(json_path), entries)

            items = prepare_batch_items(load_manifest(yaml_path))
            self.assertEqual(items[0].steps, [{"op": "blur"}])
            self.assertIsNone(items[1].output_path)
            self.assertEqual(list(items[1].steps), [])

    def test_manifest_must_be_a_list(self) -> None:
        with tempfile.TemporaryDirectory() as tmp_dir:
            path = Path(tmp_dir) / "jobs.yml"
            path.write_text("input: a.jpg\n", encoding="utf-8")
            with self.assertRaises(ValueError):
                load_manifest(path)

    def test_prepare_rejects_bad_entries(self) -> None:
        for entries in (
            [{"output": "x.jpg"}],
            [{"input": "a.jpg", "steps": "resize"}],
            [{"input": "a.jpg", "steps": [{"op": "explode"}]}],
        ):
            with self.subTest(entries=entries):
                with self.assertRaises(ValueError):
                    prepare_batch_items(entries)


if __name__ == "__main__":
    unittest.main()
