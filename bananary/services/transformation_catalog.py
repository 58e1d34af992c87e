# FILE: bananary/services/transformation_catalog.py
"""Named prompt templates offered to the client.

`prompt == "CUSTOM"` means the user's own text is sent. Categories carry
nested `items` and have no prompt of their own.
"""

from typing import Any, Dict, Iterator, List, Optional

CUSTOM_PROMPT = "CUSTOM"


def _fx(key: str, prompt: str, emoji: str, **flags: Any) -> Dict[str, Any]:
    item = {
        "key": key,
        "title_key": f"transformations.effects.{key}.title",
        "description_key": f"transformations.effects.{key}.description",
        "prompt": prompt,
        "emoji": emoji,
    }
    item.update(flags)
    return item


TRANSFORMATIONS: List[Dict[str, Any]] = [
    _fx("customPrompt", CUSTOM_PROMPT, "✍️",
        is_multi_image=True, is_primary_optional=True, is_secondary_optional=True),

    # Viral & fun
    _fx("figurine",
        "turn this photo into a character figure. Behind it, place a box with the character's image printed on it, "
        "and a computer showing the Blender modeling process on its screen. In front of the box, add a round plastic "
        "base with the character figure standing on it. set the scene indoors if possible",
        "🧍"),
    _fx("funko", "Transform the person into a Funko Pop figure, shown inside and next to its packaging.", "📦"),
    _fx("lego", "Transform the person into a LEGO minifigure, inside its packaging box.", "🧱"),
    _fx("crochet", "Transform the subject into a handmade crocheted yarn doll with a cute, chibi-style appearance.", "🧶"),
    _fx("cosplay",
        "Generate a highly detailed, realistic photo of a person cosplaying the character in this illustration. "
        "Replicate the pose, expression, and framing.",
        "🎭"),
    _fx("plushie", "Turn the person in this photo into a cute, soft plushie doll.", "🧸"),
    _fx("keychain", "Turn the subject into a cute acrylic keychain, shown attached to a bag.", "🔑"),

    # Photo & pro edits
    _fx("hdEnhance", "Enhance this image to high resolution, improving sharpness and clarity.", "🔍"),
    _fx("pose",
        "Apply the pose from the second image to the character in the first image. "
        "Render as a professional studio photograph.",
        "💃", is_multi_image=True),
    _fx("photorealistic", "Turn this illustration into a photorealistic version.", "🪄"),
    _fx("fashion",
        "Transform the photo into a stylized, ultra-realistic fashion magazine portrait with cinematic lighting.", "📸"),
    _fx("hyperrealistic",
        "Generate a hyper-realistic, fashion-style photo with strong, direct flash lighting, grainy texture, "
        "and a cool, confident pose.",
        "✨"),

    # Design & product
    _fx("architecture",
        "Convert this photo of a building into a miniature architecture model, placed on a cardstock in an indoor "
        "setting. Show a computer with modeling software in the background.",
        "🏗️"),
    _fx("productRender", "Turn this product sketch into a photorealistic 3D render with studio lighting.", "💡"),
    _fx("sodaCan",
        "Design a soda can using this image as the main graphic, and show it in a professional product shot.", "🥤"),
    _fx("industrialDesign",
        "Turn this industrial design sketch into a realistic product photo, rendered with light brown leather and "
        "displayed in a minimalist museum setting.",
        "🛋️"),
    _fx("iphoneWallpaper",
        "Turn the image into an iPhone lock screen wallpaper effect, with the phone's time (01:16), date "
        "(Sunday, September 16), and status bar information (battery, signal, etc.), with the flashlight and camera "
        "buttons at the bottom, overlaid on the image. The original image should be adapted to a vertical "
        "composition that fits a phone screen. The phone is placed on a solid color background of the same color "
        "scheme.",
        "📱"),

    # Creative tools
    _fx("colorPalette", "Turn this image into a clean, hand-drawn line art sketch.", "🎨",
        step_two_prompt="Color the line art using the colors from the second image.",
        is_multi_image=True, is_two_step=True),
    {
        "key": "videoGeneration",
        "title_key": "transformations.video.title",
        "description_key": "transformations.video.description",
        "prompt": CUSTOM_PROMPT,
        "emoji": "🎬",
        "is_video": True,
    },
    _fx("isolate",
        "Isolate the person in the masked area and generate a high-definition photo of them against a neutral "
        "background.",
        "🎯"),
    _fx("screen3d",
        "For an image with a screen, add content that appears to be glasses-free 3D, popping out of the screen.", "📺"),
    _fx("makeup", "Analyze the makeup in this photo and suggest improvements by drawing with a red pen.", "💄"),
    _fx("background", "Change the background to a Y2K aesthetic style.", "🪩"),
    _fx("addIllustration",
        "Add a cute, cartoon-style illustrated couple into the real-world scene, sitting and talking.", "🧑‍🎨"),

    {
        "key": "category_effects",
        "title_key": "transformations.categories.effects.title",
        "emoji": "✨",
        "items": [
            _fx("pixelArt", "Redraw the image in a retro 8-bit pixel art style.", "👾"),
            _fx("watercolor", "Transform the image into a soft and vibrant watercolor painting.", "🖌️"),
            _fx("popArt",
                "Reimagine the image in the style of Andy Warhol's pop art, with bold colors and screen-print "
                "effects.",
                "🎨"),
            _fx("comicBook",
                "Convert the image into a classic comic book panel with halftones, bold outlines, and action text.",
                "💥"),
            _fx("claymation", "Recreate the image as a charming stop-motion claymation scene.", "🗿"),
            _fx("ukiyoE", "Redraw the image in the style of a traditional Japanese Ukiyo-e woodblock print.", "🌊"),
            _fx("stainedGlass", "Transform the image into a vibrant stained glass window with dark lead lines.", "🪟"),
            _fx("origami", "Reconstruct the subject of the image using folded paper in an origami style.", "🦢"),
            _fx("neonGlow", "Outline the subject in bright, glowing neon lights against a dark background.", "💡"),
            _fx("vintagePhoto",
                "Give the image an aged, sepia-toned vintage photograph look from the early 20th century.", "📜"),
            _fx("blueprintSketch", "Convert the image into a technical blueprint-style architectural drawing.", "📐"),
            _fx("glitchArt", "Apply a digital glitch effect with datamoshing, pixel sorting, and RGB shifts.", "📉"),
            _fx("hologram", "Project the subject as a futuristic, glowing blue hologram.", "🌐"),
            _fx("lowPoly", "Reconstruct the image using a low-polygon geometric mesh.", "🔺"),
            _fx("charcoalSketch",
                "Redraw the image as a dramatic, high-contrast charcoal sketch on textured paper.", "✍🏽"),
            _fx("steampunk",
                "Reimagine the subject with steampunk aesthetics, featuring gears, brass, and Victorian-era "
                "technology.",
                "⚙️"),
            _fx("storybook", "Redraw the image in the style of a whimsical children's storybook illustration.", "📖"),
            _fx("mosaic", "Transform the image into a mosaic made of small ceramic tiles.", "💠"),
            _fx("bronzeStatue", "Turn the subject into a weathered bronze statue on a pedestal.", "🗿"),
        ],
    },
]


def iter_transformations(items: Optional[List[Dict[str, Any]]] = None) -> Iterator[Dict[str, Any]]:
    """Depth-first walk over every entry, categories included."""
    for t in TRANSFORMATIONS if items is None else items:
        yield t
        if t.get("items"):
            yield from iter_transformations(t["items"])


def get_transformation(key: str) -> Optional[Dict[str, Any]]:
    """Lookup by key. Categories are not selectable and return None."""
    for t in iter_transformations():
        if t["key"] == key:
            return None if t.get("items") else t
    return None
