import json
import os
import sys

from kpp_parser import KppParser, pattern_to_png

KPP_DIR = "./assets/kpp"
OUTPUT_DIR = "./output"
KPP_EXTENSION = ".kpp"

XML_SUBDIR = "xml"
JSON_SUBDIR = "json"
BRUSHES_SUBDIR = "brushes"
PATTERNS_SUBDIR = "patterns"


def write_to_disk(data, output_path, file_name):
    """Write text or bytes to output_path/file_name, creating the folder if needed"""
    if not os.path.exists(output_path):
        os.makedirs(output_path)
    full_path = os.path.join(output_path, file_name)
    if isinstance(data, bytes):
        with open(full_path, 'wb') as file:
            file.write(data)
    else:
        with open(full_path, 'w', encoding='utf-8') as file:
            file.write(data)
    return full_path


def to_json(obj):
    """
    Pretty-printed JSON. A NaN patternStrength is written as a bare NaN token,
    which Python's json reads back but strict JSON readers reject.
    """
    return json.dumps(obj, indent=2, ensure_ascii=False)


class KppConverter:
    """
    Batch-convert a folder of .kpp presets into xml/, json/, brushes/ and
    patterns/ under the output folder. One broken file never stops the batch.
    """
    def __init__(self, input_dir=KPP_DIR, output_dir=OUTPUT_DIR):
        self.input_dir = input_dir
        self.output_dir = output_dir
        self.xml_dir = os.path.join(output_dir, XML_SUBDIR)
        self.json_dir = os.path.join(output_dir, JSON_SUBDIR)
        self.brushes_dir = os.path.join(output_dir, BRUSHES_SUBDIR)
        self.patterns_dir = os.path.join(output_dir, PATTERNS_SUBDIR)

    def list_files(self):
        return sorted(f for f in os.listdir(self.input_dir) if f.endswith(KPP_EXTENSION))

    def run(self):
        for directory in (self.xml_dir, self.json_dir, self.brushes_dir, self.patterns_dir):
            if not os.path.exists(directory):
                os.makedirs(directory)

        files = self.list_files()
        print(f"Found {len(files)} .kpp files to process\n")

        summary = {'processed': [], 'skipped': [], 'failed': []}
        for file in files:
            print(f"Processing: {file}")
            try:
                if self.process_file(file):
                    summary['processed'].append(file)
                else:
                    summary['skipped'].append(file)
            except Exception as e:
                print(f" [Err] Error processing {file}: {e}\n")
                summary['failed'].append(file)

        print("Processing complete!")
        return summary

    def process_file(self, file):
        """Convert one preset. Returns False when the file holds no preset data."""
        kpp = KppParser(os.path.join(self.input_dir, file))
        base_name = kpp.base_name

        if not kpp.check():
            print(f" No preset data found in {file}\n")
            return False

        preset = kpp.parse()

        path = write_to_disk(kpp.preset_xml, self.xml_dir, f"{base_name}.xml")
        print(f"  ✓ Saved XML to {path}")

        path = write_to_disk(to_json(preset), self.json_dir, f"{base_name}.json")
        print(f"  ✓ Saved full JSON to {path}")

        brush_data = kpp.brush_data()

        pattern = kpp.pattern_data()
        if pattern is not None:
            pattern_name = f"{base_name}_pattern.png"
            if self.save_pattern(pattern, pattern_name):
                brush_data['patternFile'] = pattern_name

        brush_json = to_json({
            'name': preset['name'],
            'paintopid': preset['paintopid'],
            'brush': brush_data,
        })
        path = write_to_disk(brush_json, self.brushes_dir, f"{base_name}_brush.json")
        print(f"  ✓ Saved brush data to {path}\n")
        return True

    def save_pattern(self, data, pattern_name):
        try:
            path = write_to_disk(pattern_to_png(data), self.patterns_dir, pattern_name)
        except Exception as e:
            print(f"  [Err] Error saving pattern bitmap: {e}")
            return False
        print(f"  ✓ Saved pattern to {path}")
        return True


def main(argv=None):
    args = sys.argv[1:] if argv is None else argv
    if len(args) > 2:
        print("Usage: python kpp_converter.py [INPUT_DIR] [OUTPUT_DIR]")
        sys.exit(1)

    input_dir = args[0] if len(args) > 0 else KPP_DIR
    output_dir = args[1] if len(args) > 1 else OUTPUT_DIR

    converter = KppConverter(input_dir, output_dir)
    try:
        converter.run()
    except OSError as e:
        # listing the input folder or creating the output folders failed
        print(f"[Err] Conversion aborted (input: {input_dir}, output: {output_dir}): {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
