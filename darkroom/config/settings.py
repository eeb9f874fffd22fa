# Pipeline settings

# --- Pipeline Parameters ---
PIPELINE_DEFAULTS = {
    # Lookup table sizes (entries)
    "tone_lut_size": 4096,
    "display_lut_size": 4096,
    # Number of distinct tone tables kept by the default cache
    "tone_lut_cache_size": 8,
    # Longest edge of the proxy analysed by auto-enhance
    "preview_max_edge": 512,
    # Luminance below this is treated as black by the tone curve
    "luminance_epsilon": 1e-6,
    # Slack added before truncating normalized crop edges to pixels
    "crop_pixel_epsilon": 1e-6,
}

# --- Tone Curve Zones (perceptual space) ---
TONE_CURVE_ZONES = {
    "blacks_hi": 0.15,
    "shadow_lo": 0.10,
    "shadow_hi": 0.35,
    "highlight_lo": 0.65,
    "highlight_hi": 0.90,
    "feather": 0.05,
    "blacks_lift": 0.10,
}

# --- Vibrance ---
VIBRANCE_DEFAULTS = {
    # Skin hue window in degrees: ramp in 350->5, plateau 5->55, ramp out 55->85
    "skin_ramp_in_start": 350.0,
    "skin_plateau_start": 5.0,
    "skin_plateau_end": 55.0,
    "skin_ramp_out_end": 85.0,
    "skin_protection": 0.7,
}

# --- Auto Enhance Calibration ---
AUTO_ENHANCE_DEFAULTS = {
    # Exposure
    "target_mid": 0.461,
    "exposure_strength": 0.45,
    "exposure_dead_zone": 0.07,
    "exposure_max_ev": 2.0,
    "median_floor": 0.01,

    # Highlights / Shadows / Blacks
    "highlight_threshold": 0.58,
    "highlight_range": 0.42,
    "shadow_threshold": 0.38,
    "shadow_cap": 70.0,
    "blacks_trigger": 5.0,
    "blacks_ratio": 0.3,
    "blacks_cap": 25.0,

    # Contrast
    "contrast_spread": 0.5,
    "contrast_cap": 20.0,

    # Gray-point white balance
    "neutral_l_min": 0.3,
    "neutral_l_max": 0.85,
    "neutral_chroma_max": 0.04,
    "neutral_fraction_divisor": 50,  # 2% of sampled pixels
    "neutral_min_count": 3,
    "neutral_channel_floor": 0.01,
    "temp_scale": 1500.0,
    "temp_shift_cap": 2000.0,
    "temp_dead_zone": 0.05,
    "temp_min": 3000.0,
    "temp_max": 9000.0,
    "tint_scale": 1000.0,
    "tint_cap": 30.0,
    "tint_dead_zone": 0.003,

    # Vibrance
    "vibrance_cap": 25.0,
    "saturation_floor": 0.02,
}

# --- GPU Settings ---
GPU_DEFAULTS = {
    "use_gpu": True,
    "workgroup_size": 16,
    # Probe order for ComputeMirror when no backend is requested
    "backend_priority": ("cupy", "wgpu"),
}

# --- Logging ---
LOGGING_LEVEL = "INFO" # Options: DEBUG, INFO, WARNING, ERROR
