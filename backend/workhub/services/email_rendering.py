"""HTML preparation for tracked campaign email.

Each recipient gets its own copy: asset URLs are made absolute, the body is
wrapped in a table layout that email clients render consistently, an open
pixel is appended and every external link is routed through the click
tracker with the target URL carried as unpadded URL-safe base64.
"""

from __future__ import annotations

import base64
import binascii
import html
import re
import uuid

from workhub.config import EMAIL_MARKETING_PREFIX

_UPLOADS_SRC = re.compile(r"""src=(["'])(?:http://localhost:(?:5000|3000))?/uploads/""")
_TRACKABLE_HREF = re.compile(r'href="(?!mailto:|tel:|#|http://localhost)([^"]+)"')

_EMAIL_SHELL = """<!DOCTYPE html PUBLIC "-//W3C//DTD XHTML 1.0 Transitional//EN" "http://www.w3.org/TR/xhtml1/DTD/xhtml1-transitional.dtd">
<html xmlns="http://www.w3.org/1999/xhtml">
<head>
<meta http-equiv="Content-Type" content="text/html; charset=UTF-8" />
<meta name="viewport" content="width=device-width, initial-scale=1.0"/>
<style type="text/css">
body {{ margin: 0; padding: 0; background-color: #F8F9FA; -webkit-text-size-adjust: 100%; -ms-text-size-adjust: 100%; }}
img {{ border: 0; height: auto; line-height: 100%; outline: none; text-decoration: none; -ms-interpolation-mode: bicubic; }}
table {{ border-collapse: collapse; mso-table-lspace: 0pt; mso-table-rspace: 0pt; }}
</style>
</head>
<body style="margin:0; padding:0; background-color: #F8F9FA;">
<table border="0" cellpadding="0" cellspacing="0" width="100%" style="background-color: #F8F9FA;">
<tr>
<td align="center" style="padding: 40px 0;">
{body}
{pixel}
</td>
</tr>
</table>
</body>
</html>
"""

_TEST_BANNER = (
    '<div style="background: #FFF4E5; padding: 10px; text-align: center; font-size: 12px; '
    'color: #666; font-family: sans-serif; margin-bottom: 20px;">'
    "This is a TEST email for campaign: <strong>{name}</strong>"
    "</div>\n"
)


def new_tracking_id() -> str:
    return str(uuid.uuid4())


def encode_tracking_url(url: str) -> str:
    return base64.urlsafe_b64encode(url.encode("utf-8")).decode("ascii").rstrip("=")


def decode_tracking_url(encoded: str) -> str:
    """Reverse `encode_tracking_url`. Raises ValueError on malformed input."""

    padded = encoded + "=" * (-len(encoded) % 4)
    try:
        return base64.urlsafe_b64decode(padded.encode("ascii")).decode("utf-8")
    except (binascii.Error, UnicodeError) as e:
        raise ValueError(f"invalid tracking url: {e}") from e


def open_pixel_url(base_url: str, campaign_id: str, tracking_id: str) -> str:
    return f"{base_url}{EMAIL_MARKETING_PREFIX}/track/open/{campaign_id}/{tracking_id}"


def click_url(base_url: str, campaign_id: str, tracking_id: str, target: str) -> str:
    return (
        f"{base_url}{EMAIL_MARKETING_PREFIX}/track/click/{campaign_id}/{tracking_id}"
        f"?u={encode_tracking_url(target)}"
    )


def absolutize_asset_urls(content: str, base_url: str) -> str:
    return _UPLOADS_SRC.sub(lambda m: f"src={m.group(1)}{base_url}/uploads/", content)


def wrap_email_shell(content: str, pixel_src: str) -> str:
    pixel = f'<img src="{pixel_src}" width="1" height="1" style="display:none;" />'
    return _EMAIL_SHELL.format(body=content, pixel=pixel)


def rewrite_links(content: str, base_url: str, campaign_id: str, tracking_id: str) -> str:
    def _wrap(match: re.Match) -> str:
        url = match.group(1)
        if "localhost" in url:
            return match.group(0)
        return f'href="{click_url(base_url, campaign_id, tracking_id, url)}"'

    return _TRACKABLE_HREF.sub(_wrap, content)


def render_campaign_html(content: str, *, base_url: str, campaign_id: str, tracking_id: str) -> str:
    body = absolutize_asset_urls(content or "", base_url)
    wrapped = wrap_email_shell(body, open_pixel_url(base_url, campaign_id, tracking_id))
    return rewrite_links(wrapped, base_url, campaign_id, tracking_id)


def render_test_html(content: str, campaign_name: str) -> str:
    return _TEST_BANNER.format(name=html.escape(campaign_name)) + (content or "")
