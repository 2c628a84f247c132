import base64
import binascii
import io
import math
import os
import re

from PIL import Image, PngImagePlugin, UnidentifiedImageError

from kpp_xml import as_list, parse_markup

# ==============================================================================
# 1. 常量与映射表 (Constants & Mapping Tables)
# ==============================================================================

# Presets with an embedded pattern carry multi-megabyte zTXt chunks, well past
# Pillow's default decompression guard.
MAX_TEXT_CHUNK = 64 * 1024 * 1024

PRESET_TAG = 'preset'
BRUSH_DEFINITION_PARAM = 'brush_definition'
PATTERN_PARAM = 'Texture/Pattern/Pattern'
PATTERN_SCALE_PARAM = 'Texture/Pattern/Scale'
PATTERN_STRENGTH_PARAM = 'Texture/Pattern/Strength'

# Value priority of a <param>: first field present wins
PARAM_VALUE_FIELDS = ('value', 'text', 'cdata')

# Identifiers keep their exact text ("007" stays "007")
IDENTITY_ATTRIBUTES = ('name', 'paintopid')

BRUSH_FIELDS = ('type', 'spacing', 'angle', 'scale', 'randomness', 'density', 'filename')
MASK_GENERATOR_FIELDS = ('type', 'diameter', 'ratio', 'hfade', 'vfade', 'spikes')

# [TABLE 1] Brush tip descriptor -> output key
BRUSH_OUTPUT_KEYS = {
    'spacing': 'spacing', 'angle': 'angle', 'scale': 'scale',
    'randomness': 'randomness', 'density': 'density',
    'filename': 'filename', 'type': 'type',
}

# [TABLE 2] MaskGenerator -> output key
MASK_GENERATOR_OUTPUT_KEYS = {
    'diameter': 'size', 'ratio': 'roundness',
    'hfade': 'hfade', 'vfade': 'vfade', 'spikes': 'spikes',
}

# [TABLE 3] Dynamic property parameters -> output key
DYNAMIC_PROPERTY_KEYS = {
    'OpacityValue': 'opacity',
    'ScatterValue': 'scatter',
    'FlowValue': 'flow',
}

# [TABLE 4] Sensor parameters -> output key (curve value only)
SENSOR_CURVE_KEYS = {
    'OpacitySensor': 'pressureOpacity',
    'SizeSensor': 'pressureSize',
    'RotationSensor': 'pressureRotation',
    'ScatterSensor': 'pressureScatter',
    'FlowSensor': 'pressureFlow',
}

DATA_URI_RE = re.compile(r'^data:image/[\w.+-]+;base64,')
# Longest leading float literal, the way JavaScript's parseFloat reads it
FLOAT_PREFIX_RE = re.compile(r'[-+]?(?:Infinity|(?:\d+\.?\d*|\.\d+)(?:[eE][-+]?\d+)?)')


def pick_present(source, fields):
    """Copy only the fields that exist in source; absent stays absent"""
    return {field: source[field] for field in fields if field in source}


def parse_float(value):
    if isinstance(value, (int, float)):
        return float(value)
    m = FLOAT_PREFIX_RE.match(str(value).strip())
    if not m:
        return math.nan
    return float(m.group(0))


# ==============================================================================
# 2. 容器标签读取 (Container Tags)
# ==============================================================================

def extract_tags(data):
    """
    [Container] Read the text chunks of a .kpp buffer into {tag: value}.

    A .kpp is a PNG thumbnail; Krita stores the preset XML in a 'preset'
    text chunk next to the image data. Raises PIL.UnidentifiedImageError
    when the buffer is not an image at all.
    """
    PngImagePlugin.MAX_TEXT_CHUNK = max(PngImagePlugin.MAX_TEXT_CHUNK, MAX_TEXT_CHUNK)
    PngImagePlugin.MAX_TEXT_MEMORY = max(PngImagePlugin.MAX_TEXT_MEMORY, MAX_TEXT_CHUNK)

    with Image.open(io.BytesIO(data)) as img:
        tags = {key: str(val) for key, val in img.info.items() if isinstance(val, str)}
        # .text also picks up chunks stored after IDAT
        text_chunks = getattr(img, 'text', None)
        if text_chunks:
            tags.update({key: str(val) for key, val in text_chunks.items()})
    return tags


# ==============================================================================
# 3. 预设解析 (Preset Decoding)
# ==============================================================================

def decode_preset(preset_xml):
    """
    [Preset] <Preset> markup -> {'name', 'paintopid', 'parameters'}

    Raises ValueError when the <Preset> root or its <param> list is missing.
    """
    tree = parse_markup(preset_xml, stop_nodes=('param',), raw_attributes=IDENTITY_ATTRIBUTES)
    preset = tree.get('Preset')
    if not isinstance(preset, dict):
        raise ValueError(f"No <Preset> root element (found <{next(iter(tree))}>)")
    if 'param' not in preset:
        raise ValueError("Preset has no <param> list")

    parameters = {}
    for param in as_list(preset['param']):
        if not isinstance(param, dict) or 'name' not in param:
            continue
        value = ""
        for field in PARAM_VALUE_FIELDS:
            if field in param:
                value = param[field]
                break
        parameters[param['name']] = value

    return {
        'name': preset.get('name', ""),
        'paintopid': preset.get('paintopid', ""),
        'parameters': parameters,
    }


def decode_brush_definition(brush_definition):
    """
    [Preset] Parse the nested <Brush> markup of the brush_definition parameter.

    Returns the tip descriptor (with an optional 'maskGenerator' entry) or None
    when there is no <Brush> root or the markup cannot be parsed.
    """
    try:
        tree = parse_markup(str(brush_definition))
    except Exception as e:
        print(f"  [Err] Error parsing brush definition: {e}")
        return None

    brush = tree.get('Brush')
    if brush is None:
        return None
    if not isinstance(brush, dict):
        brush = {}

    descriptor = pick_present(brush, BRUSH_FIELDS)
    mask_generators = as_list(brush.get('MaskGenerator'))
    if mask_generators:
        mask = mask_generators[0] if isinstance(mask_generators[0], dict) else {}
        descriptor['maskGenerator'] = pick_present(mask, MASK_GENERATOR_FIELDS)
    return descriptor


def sensor_curve(sensor):
    """
    [Preset] Curve value of a sensor parameter, or None.

    The sensor value is its own markup text (<params id="pressure" curve="..."/>),
    parsed apart from the preset. Anything that is not markup has no curve.
    """
    if not isinstance(sensor, str) or not sensor.strip().startswith('<'):
        return None
    try:
        tree = parse_markup(sensor)
    except Exception as e:
        print(f"  [Err] Error parsing sensor: {e}")
        return None

    params = as_list(tree.get('params'))
    if not params or not isinstance(params[0], dict):
        return None
    return params[0].get('curve')


# ==============================================================================
# 4. 笔刷数据投影 (Brush Projection)
# ==============================================================================

def extract_brush_parameters(parameters):
    """
    [Projection] Flatten the parameter map into the condensed brush record.

    Only fields present in the preset are emitted; keys are renamed per the
    tables above. patternFile is added later by the caller.
    """
    brush_data = {}

    if parameters.get(BRUSH_DEFINITION_PARAM):
        descriptor = decode_brush_definition(parameters[BRUSH_DEFINITION_PARAM])
        if descriptor:
            for field, key in BRUSH_OUTPUT_KEYS.items():
                if field in descriptor:
                    brush_data[key] = descriptor[field]
            mask = descriptor.get('maskGenerator')
            if mask:
                for field, key in MASK_GENERATOR_OUTPUT_KEYS.items():
                    if field in mask:
                        brush_data[key] = mask[field]

    for param, key in DYNAMIC_PROPERTY_KEYS.items():
        if param in parameters:
            brush_data[key] = parameters[param]

    for param, key in SENSOR_CURVE_KEYS.items():
        if param not in parameters:
            continue
        curve = sensor_curve(parameters[param])
        if curve is not None:
            brush_data[key] = curve

    # Scale passes through, Strength is read as a float (NaN if not numeric)
    if parameters.get(PATTERN_PARAM):
        if PATTERN_SCALE_PARAM in parameters:
            brush_data['patternScale'] = parameters[PATTERN_SCALE_PARAM]
        if PATTERN_STRENGTH_PARAM in parameters:
            brush_data['patternStrength'] = parse_float(parameters[PATTERN_STRENGTH_PARAM])

    return brush_data


# ==============================================================================
# 5. 纹理图案 (Pattern Bitmap)
# ==============================================================================

def decode_pattern(payload):
    """[Pattern] base64 (optionally a data: URI) -> raw bytes, None on failure"""
    try:
        clean = DATA_URI_RE.sub('', str(payload).strip(), count=1)
        clean = re.sub(r'\s+', '', clean)
        data = base64.b64decode(clean, validate=True)
        if not data:
            raise ValueError("Empty pattern payload")
        return data
    except (binascii.Error, ValueError) as e:
        print(f"  [Err] Error decoding pattern bitmap: {e}")
        return None


def pattern_to_png(data):
    """
    [Pattern] Make sure the bytes written as *_pattern.png really are PNG.

    PNG data passes through untouched; other raster formats Pillow knows are
    re-encoded; unknown bytes are returned as they are.
    """
    try:
        with Image.open(io.BytesIO(data)) as img:
            if img.format == 'PNG':
                return data
            print(f"  [Info] Pattern is {img.format}, re-encoding as PNG")
            if img.mode not in ('1', 'L', 'LA', 'I', 'P', 'RGB', 'RGBA'):
                img = img.convert('RGBA')
            out = io.BytesIO()
            img.save(out, format='PNG')
            return out.getvalue()
    except UnidentifiedImageError:
        print("  [Warn] Pattern data is not a recognized image, saving raw bytes")
        return data


# ==============================================================================
# 6. KPP 文件解析器 (KPP File Parser)
# ==============================================================================

class KppParser:
    """
    Parse a Krita .kpp preset: pull the preset XML out of the PNG container,
    resolve the parameter map and derive the condensed brush record.
    """
    def __init__(self, filename):
        self.filename = filename
        self.base_name = os.path.splitext(os.path.basename(filename))[0]
        self.tags = {}
        self.preset_xml = None
        self.preset = None

    def check(self):
        """Does the container carry preset data?"""
        with open(self.filename, 'rb') as f:
            data = f.read()
        try:
            self.tags = extract_tags(data)
        except UnidentifiedImageError:
            return False
        self.preset_xml = self.tags.get(PRESET_TAG) or None
        return self.preset_xml is not None

    def parse(self):
        if self.preset_xml is None and not self.check():
            raise ValueError(f"No preset data found in {self.filename}")
        self.preset = decode_preset(self.preset_xml)
        return self.preset

    def brush_data(self):
        return extract_brush_parameters(self.preset['parameters'])

    def pattern_data(self):
        """Decoded pattern bytes, or None when there is none or it is broken"""
        payload = self.preset['parameters'].get(PATTERN_PARAM)
        if not payload:
            return None
        return decode_pattern(payload)
