# Processing package initialization
from .params import EditParams
from .module import ProcessingModule
from .white_balance import WhiteBalance, wb_matrix
from .exposure import Exposure, exposure_multiplier
from .tone_curve import ToneCurve, ToneLUTCache, build_tone_lut, lut_lerp
from .vibrance import Vibrance, skin_tone_weight
from .saturation import Saturation
from .crop import Crop, CropRect, crop_rect
from .display import build_display_lut, encode_display, encode_display_rgba
from .auto_enhance import analyze, analyze_preview, luminance_percentiles, Percentiles
from .pipeline import Pipeline, run_pipeline
from .session import EditSession

__all__ = [
    'EditParams',
    'ProcessingModule',
    'WhiteBalance',
    'wb_matrix',
    'Exposure',
    'exposure_multiplier',
    'ToneCurve',
    'ToneLUTCache',
    'build_tone_lut',
    'lut_lerp',
    'Vibrance',
    'skin_tone_weight',
    'Saturation',
    'Crop',
    'CropRect',
    'crop_rect',
    'build_display_lut',
    'encode_display',
    'encode_display_rgba',
    'analyze',
    'analyze_preview',
    'luminance_percentiles',
    'Percentiles',
    'Pipeline',
    'run_pipeline',
    'EditSession',
]
