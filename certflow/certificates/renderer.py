"""Certificate document rendering.

The document is built from stored certificate fields only (no clock, no
random ids), so the same certificate always renders to the same bytes.
"""

from html import escape

from .models import Certificate


CERTIFICATE_TEMPLATE = """<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="utf-8">
<title>Certificate of Completion - {course_title}</title>
<style>
body {{ font-family: Georgia, serif; background: #f7f4ec; margin: 0; }}
.certificate {{ max-width: 900px; margin: 40px auto; padding: 48px;
  background: #ffffff; border: 12px double #1f3a5f; text-align: center; }}
h1 {{ color: #1f3a5f; letter-spacing: 2px; }}
.course {{ font-size: 28px; font-weight: bold; margin: 24px 0; }}
.grade {{ font-size: 22px; }}
.meta {{ color: #555555; font-size: 14px; margin-top: 32px; }}
</style>
</head>
<body>
<div class="certificate">
<h1>Certificate of Completion</h1>
<p>This certifies that the holder of this certificate has successfully completed</p>
<p class="course">{course_title}</p>
<p class="grade">Grade {grade} &middot; {percentage_score}%
({score} / {total} points)</p>
<p>Completed on {completion_date}</p>
<div class="meta">
<p>Issued by {issuer}</p>
<p>Certificate ID: {certificate_id}</p>
<p>Verify at <a href="{verify_url}">{verify_url}</a></p>
</div>
</div>
</body>
</html>
"""


def render_certificate_html(
    certificate: Certificate, issuer: str, verify_url: str
) -> bytes:
    """Render a certificate as a UTF-8 HTML document.

    Args:
        certificate: Stored certificate
        issuer: Issuer name printed on the document
        verify_url: Public verification link of the certificate

    Returns:
        Document bytes
    """
    completion_date = (
        certificate.completion_date.strftime("%B %d, %Y")
        if certificate.completion_date
        else ""
    )
    document = CERTIFICATE_TEMPLATE.format(
        course_title=escape(certificate.course_title or str(certificate.course_id)),
        grade=escape(certificate.grade),
        percentage_score=certificate.percentage_score,
        score=certificate.score,
        total=certificate.total_possible_points,
        completion_date=escape(completion_date),
        issuer=escape(issuer),
        certificate_id=escape(certificate.certificate_id),
        verify_url=escape(verify_url),
    )
    return document.encode("utf-8")
