"""
Image Converter - Streamlit Application

Convert, resize, crop, rotate, flip and filter images, optionally compressing
them to a target file size.
"""

import streamlit as st
from typing import Dict, Any, Optional

from edit_spec import EditSpec, ImageFormat
from errors import ImageConversionError
from processors.pipeline import ImageConverter, apply_edits
from utils.codec import decode
from utils.image_utils import buffer_to_pil, format_file_size, size_change_label, validate_image_file
from utils.logging import get_logger

logger = get_logger("app")

# Page configuration
st.set_page_config(
    page_title="Image Converter",
    page_icon="🖼️",
    layout="wide",
    initial_sidebar_state="expanded"
)

st.markdown("""
<style>
    .main-header {
        font-size: 2.5rem;
        font-weight: 700;
        text-align: center;
        margin-bottom: 0.5rem;
    }

    .sub-header {
        color: #a8a8b3;
        text-align: center;
        font-size: 1.1rem;
        margin-bottom: 2rem;
    }

    #MainMenu {visibility: hidden;}
    footer {visibility: hidden;}
</style>
""", unsafe_allow_html=True)


def init_session_state():
    """Initialize session state variables."""
    if 'converted' not in st.session_state:
        st.session_state.converted = None


@st.cache_resource
def get_converter() -> ImageConverter:
    """One converter per process; it carries configuration only."""
    return ImageConverter()


def sidebar_options() -> Dict[str, Any]:
    """Collect conversion options from the sidebar, in EditSpec.from_options shape."""
    with st.sidebar:
        st.markdown("## ⚙️ Settings")

        formats = [f.value for f in ImageFormat]
        options: Dict[str, Any] = {
            "format": st.selectbox("Output format", formats, index=formats.index("webp")),
            "quality": st.slider("Quality", 1, 100, 90),
        }

        st.markdown("---")
        st.markdown("### Resize")
        options["maxWidth"] = st.number_input("Max width (0 = none)", 0, 20000, 0, step=10)
        options["maxHeight"] = st.number_input("Max height (0 = none)", 0, 20000, 0, step=10)
        options["maintainAspectRatio"] = st.checkbox("Maintain aspect ratio", value=True)
        options["resizeMode"] = st.selectbox("Resize mode", ["fit", "fill", "crop"], index=0)

        st.markdown("---")
        st.markdown("### Transform")
        options["rotate"] = st.select_slider("Rotate", options=[-180, -90, 0, 90, 180], value=0)
        options["flip"] = st.selectbox("Flip", ["none", "horizontal", "vertical", "both"], index=0)

        with st.expander("✂️ Crop"):
            if st.checkbox("Crop rectangle", value=False):
                options["crop"] = {
                    "x": st.number_input("X", 0, 20000, 0),
                    "y": st.number_input("Y", 0, 20000, 0),
                    "width": st.number_input("Width", 1, 20000, 100),
                    "height": st.number_input("Height", 1, 20000, 100),
                }

        with st.expander("🎨 Filters"):
            filters: Dict[str, Any] = {}
            brightness = st.slider("Brightness", -100, 100, 0)
            contrast = st.slider("Contrast", -100, 100, 0)
            saturation = st.slider("Saturation", -100, 100, 0)
            blur = st.slider("Blur (px)", 0.0, 10.0, 0.0, 0.5)
            # Untouched sliders stay absent so the filter pass is skipped
            if brightness:
                filters["brightness"] = brightness
            if contrast:
                filters["contrast"] = contrast
            if saturation:
                filters["saturation"] = saturation
            if blur:
                filters["blur"] = blur
            if st.checkbox("Grayscale", value=False):
                filters["grayscale"] = True
            if st.checkbox("Sepia", value=False):
                filters["sepia"] = True
            options["filters"] = filters

        st.markdown("---")
        st.markdown("### Target File Size")
        enabled = st.checkbox("Compress to target size", value=False)
        col1, col2 = st.columns([2, 1])
        with col1:
            size = st.number_input("Size", 1.0, 100000.0, 200.0, disabled=not enabled)
        with col2:
            unit = st.selectbox("Unit", ["KB", "MB"], index=0, disabled=not enabled)
        options["targetFileSize"] = {"enabled": enabled, "size": size, "unit": unit}

    return options


def run_conversion(data: bytes, options: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """Convert an upload and report errors in the page."""
    try:
        spec = EditSpec.from_options(options)
        result = get_converter().convert(data, spec)
    except ImageConversionError as e:
        logger.warning("Conversion failed: %s", e)
        st.error(f"Conversion failed: {e}")
        return None

    return {"result": result, "spec": spec}


def main():
    """Main application entry point."""
    init_session_state()

    st.markdown('<h1 class="main-header">Image Converter</h1>', unsafe_allow_html=True)
    st.markdown('<p class="sub-header">Convert, edit and compress images to an exact size budget</p>',
                unsafe_allow_html=True)

    options = sidebar_options()

    uploaded_file = st.file_uploader(
        "Upload an image",
        type=['jpg', 'jpeg', 'png', 'webp', 'bmp', 'gif', 'tiff', 'avif'],
        help="Supported formats: JPG, PNG, WebP, BMP, GIF, TIFF, AVIF"
    )

    if uploaded_file is None:
        st.info("📤 Drag and drop an image or click to browse.")
        return

    data = uploaded_file.getvalue()
    valid, message = validate_image_file(data, uploaded_file.type)
    if not valid:
        st.error(message)
        return

    col1, col2 = st.columns(2)

    with col1:
        st.markdown("### 📸 Original")
        try:
            source = decode(data)
        except ImageConversionError as e:
            st.error(str(e))
            return
        st.image(buffer_to_pil(source), width='stretch')
        st.caption(f"{source.width}×{source.height} • {format_file_size(len(data))}")

    if st.session_state.get("source_name") != uploaded_file.name:
        st.session_state.source_name = uploaded_file.name
        st.session_state.converted = None

    if st.button("🚀 Convert"):
        with st.spinner("Converting..."):
            st.session_state.converted = run_conversion(data, options)

    converted = st.session_state.converted
    with col2:
        st.markdown("### ✨ Converted")
        if converted is None:
            # Live preview of the edits before any encoding
            try:
                preview = apply_edits(source, EditSpec.from_options(options)).buffer
                st.image(buffer_to_pil(preview), width='stretch')
                st.caption(f"Preview • {preview.width}×{preview.height}")
            except ImageConversionError as e:
                st.warning(str(e))
            return

        result = converted["result"]
        st.image(result.data, width='stretch')
        st.caption(f"{result.width}×{result.height} • {format_file_size(result.size)} "
                   f"({size_change_label(len(data), result.size)})")

        spec = converted["spec"]
        if spec.uses_target_size and result.size > spec.target_file_size.target_bytes:
            st.warning("Target size could not be reached; this is the smallest result found.")

        st.download_button(
            label="⬇️ Download",
            data=result.data,
            file_name=result.filename_for(uploaded_file.name),
            mime=result.mime_type,
            width='stretch'
        )


if __name__ == "__main__":
    main()
