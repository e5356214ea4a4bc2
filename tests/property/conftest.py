"""Hypothesis strategies for property-based testing."""

from hypothesis import strategies as st

from tubeshift.models.progress import Fingerprint, RecordStatus, Stage

WORDS = ["talk", "lecture", "intro", "ep", "01", "02", "hd", "1080p", "part", "final"]
VIDEO_EXTS = [".mp4", ".mkv", ".mov", ".webm"]
AUDIO_EXTS = [".m4a", ".mp3", ".opus", ".webm"]
OTHER_EXTS = [".txt", ".jpg", ".srt"]


@st.composite
def generate_stem(draw):
    """A stem built from a small vocabulary so that fuzzy terms collide often."""
    words = draw(st.lists(st.sampled_from(WORDS), min_size=1, max_size=4))
    delimiter = draw(st.sampled_from(["_", "-", " "]))
    return delimiter.join(words)


@st.composite
def generate_media_filename(draw):
    """A video, audio or unrelated filename for ``generate_stem()``."""
    stem = draw(generate_stem())
    role = draw(st.sampled_from(["video", "audio", "other"]))
    if role == "video":
        return f"{stem}_video{draw(st.sampled_from(VIDEO_EXTS))}"
    if role == "audio":
        return f"{stem}_audio{draw(st.sampled_from(AUDIO_EXTS))}"
    return f"{stem}{draw(st.sampled_from(OTHER_EXTS))}"


def generate_filenames(max_size=12):
    return st.lists(generate_media_filename(), max_size=max_size)


json_values = st.one_of(
    st.none(),
    st.booleans(),
    st.integers(min_value=-(2**53), max_value=2**53),
    st.text(max_size=30),
)


@st.composite
def generate_record_args(draw):
    """Keyword arguments for ``ProgressStore.record_outcome``."""
    fingerprint = draw(
        st.one_of(
            st.none(),
            st.builds(
                Fingerprint,
                size=st.integers(min_value=0, max_value=10**12),
                md5=st.one_of(st.none(), st.text(alphabet="0123456789abcdef", min_size=32, max_size=32)),
            ),
        )
    )
    return {
        "stem": draw(generate_stem()),
        "stage": draw(st.sampled_from(list(Stage))),
        "status": draw(st.sampled_from(list(RecordStatus))),
        "metadata": draw(st.dictionaries(st.text(min_size=1, max_size=10), json_values, max_size=4)),
        "attempts": draw(st.integers(min_value=0, max_value=5)),
        "fingerprint": fingerprint,
        "storage_key": draw(st.one_of(st.none(), st.text(min_size=1, max_size=40))),
    }
