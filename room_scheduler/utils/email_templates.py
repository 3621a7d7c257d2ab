from datetime import date
from html import escape

MEETING_URL = "[**VAR_OC**]"
MEETING_DATE = "[**VAR_F**]"
MEETING_TITLE = "[**VAR_T**]"
VIEWER_KEY = "[**VAR_TD**]"

REMINDER_TEMPLATE = """<!DOCTYPE html>
<html>
<head>
  <meta http-equiv="Content-Type" content="text/html; charset=UTF-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
</head>
<body style="font-family:'Cabin',sans-serif;color:#000000;">
  <table role="presentation" cellpadding="0" cellspacing="0" width="100%" border="0">
    <tr><td colspan="2" style="padding:33px 55px;"><strong>Your virtual classroom</strong></td></tr>
    <tr>
      <td style="padding:5px 55px;">Meeting link</td>
      <td style="padding:5px 55px;"><a href="[**VAR_OC**]">[**VAR_OC**]</a></td>
    </tr>
    <tr>
      <td style="padding:5px 55px;">Start date</td>
      <td style="padding:5px 55px;">[**VAR_F**]</td>
    </tr>
    <tr>
      <td style="padding:5px 55px;">Meeting name</td>
      <td style="padding:5px 55px;">[**VAR_T**]</td>
    </tr>
    <tr>
      <td style="padding:5px 55px;">Viewer key</td>
      <td style="padding:5px 55px;">[**VAR_TD**]</td>
    </tr>
  </table>
</body>
</html>
"""


def reminder_replacements(url: str, start: date, title: str, viewer_key: str) -> dict:
    return {
        MEETING_URL: url or "",
        MEETING_DATE: start.strftime("%d-%m-%Y") if start else "",
        MEETING_TITLE: title or "",
        VIEWER_KEY: viewer_key or "",
    }


def render_template(replacements: dict, template: str = REMINDER_TEMPLATE) -> str:
    html = template
    for placeholder, value in replacements.items():
        html = html.replace(placeholder, escape(value))
    return html


def reprogram_notice(title: str, session_number: int, original: date, new: date, url: str) -> str:
    return (
        "<p>Hello,</p>"
        f"<p>Session {session_number} of <strong>{escape(title or '')}</strong> "
        f"scheduled for {original.strftime('%d-%m-%Y')} has been moved to "
        f"<strong>{new.strftime('%d-%m-%Y')}</strong>, at the usual time.</p>"
        f"<p>The classroom link does not change: <a href=\"{escape(url or '')}\">{escape(url or '')}</a></p>"
    )
