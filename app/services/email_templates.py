# file: app/services/email_templates.py

import html
import re

from bs4 import BeautifulSoup

from app.models.email import EmailTemplate, RenderedEmail

NAME_PLACEHOLDER = "{{name}}"

# Plain, personal layout; heavy marketing markup tends to land in the promotions tab.
_HEAD = """<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="UTF-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
</head>
<body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333; max-width: 600px; margin: 0 auto; padding: 20px;">
"""

_FOOTER = """
  <hr style="border: none; border-top: 1px solid #eee; margin: 30px 0;">

  <p style="font-size: 12px; color: #999; text-align: center;">
    Santvaani Digital Ashram | https://santvaani.com<br>
    You are receiving this because you signed up on Santvaani.<br>
    To stop receiving emails, reply with "unsubscribe".
  </p>

</body>
</html>"""

_P = '<p style="font-size: 16px; margin-bottom: 15px;">'
_QUOTE = '<p style="font-size: 16px; margin-bottom: 15px; font-style: italic; color: #555; border-left: 3px solid #ea580c; padding-left: 15px;">'
_UL = '<ul style="font-size: 15px; line-height: 1.8; margin-bottom: 20px;">'
_SIGN = '<p style="font-size: 16px; margin-bottom: 10px;">'

WELCOME = EmailTemplate(
    subject="Welcome to Santvaani, {{name}}",
    html_content=_HEAD + f"""
  {_P}Namaste {{{{name}}}},</p>

  {_P}Thank you for joining Santvaani. We are glad to have you here.</p>

  {_P}Santvaani is your digital spiritual companion. Here is what you can explore:</p>

  {_UL}
    <li><strong>Devotional Bhajans</strong> - Sacred music and live streams</li>
    <li><strong>Bhagavad Gita AI Chatbot</strong> - Get guidance from ancient wisdom</li>
    <li><strong>Santvaani Space</strong> - Connect with fellow spiritual seekers</li>
    <li><strong>Daily Horoscope</strong> - Personalized Vedic astrology insights</li>
    <li><strong>Museum of Saints</strong> - Learn about divine masters</li>
    <li><strong>Spiritual Blogs</strong> - Deep teachings and philosophy</li>
  </ul>

  {_P}Visit your dashboard to get started: https://santvaani.com</p>

  {_QUOTE}"The soul is neither born, and nor does it die." - Bhagavad Gita 2.20</p>

  {_SIGN}With blessings,<br>The Santvaani Team</p>
""" + _FOOTER,
)

SEVEN_DAYS = EmailTemplate(
    subject="7 days with Santvaani, {{name}}",
    html_content=_HEAD + f"""
  {_P}Namaste {{{{name}}}},</p>

  {_P}It has been one week since you joined Santvaani. We wanted to check in and see how your journey is going.</p>

  {_P}Building a spiritual practice takes commitment, and you are showing up. That is worth celebrating.</p>

  {_QUOTE}"A journey of a thousand miles begins with a single step." - Lao Tzu</p>

  {_P}<strong>Continue exploring:</strong></p>

  {_UL}
    <li><strong>Santvaani Space</strong> - Connect with our spiritual community</li>
    <li><strong>Gita AI Chatbot</strong> - Ask questions, get wisdom from Bhagavad Gita</li>
    <li><strong>Event Management</strong> - Organize your Bhagwat Katha or Paath</li>
  </ul>

  {_P}Visit: https://santvaani.com/santvaani-space</p>

  {_SIGN}Keep shining,<br>The Santvaani Team</p>
""" + _FOOTER,
)

THIRTY_DAYS = EmailTemplate(
    subject="30 days with Santvaani, {{name}}",
    html_content=_HEAD + f"""
  {_P}Namaste {{{{name}}}},</p>

  {_P}Thirty days. A whole month of spiritual practice with Santvaani.</p>

  {_P}You have shown incredible dedication. Building a consistent practice is one of the most powerful things you can do for your spiritual growth, and you are doing it.</p>

  {_QUOTE}"The soul is neither born, nor does it die. The soul is eternal, unchanging, and immovable." - Bhagavad Gita 2.23</p>

  {_P}Your commitment to nurturing your soul daily is transforming you from within.</p>

  {_P}<strong>Keep exploring Santvaani:</strong></p>

  {_UL}
    <li>Share your journey in Santvaani Space</li>
    <li>Deepen your practice with daily bhajans</li>
    <li>Explore teachings in our spiritual blog</li>
    <li>Organize community events</li>
  </ul>

  {_P}This is just the beginning: https://santvaani.com</p>

  {_SIGN}Proud of you,<br>The Santvaani Family</p>
""" + _FOOTER,
)

EMAIL_TEMPLATES = {
    "welcome": WELCOME,
    "seven_days": SEVEN_DAYS,
    "thirty_days": THIRTY_DAYS,
}

# Block elements and the line breaks they leave behind in the text part
_BLOCK_BREAKS = {
    "p": "\n\n", "h1": "\n\n", "h2": "\n\n", "h3": "\n\n", "h4": "\n\n",
    "ul": "\n\n", "ol": "\n\n", "table": "\n\n", "li": "\n", "div": "\n", "tr": "\n",
}
_CONTAINERS = {"[document]", "html", "body", "ul", "ol", "table", "tbody", "thead", "tr"}


def substitute_name(text: str, name: str) -> str:
    return text.replace(NAME_PLACEHOLDER, name)


def substitute_name_html(html_text: str, name: str) -> str:
    """Like substitute_name, but the name is escaped so it can't inject markup."""
    return substitute_name(html_text, html.escape(name))


def html_to_plain_text(html_text: str, name: str) -> str:
    soup = BeautifulSoup(html_text, "html.parser")
    for tag in soup(["head", "style", "script", "title"]):
        tag.decompose()
    for br in soup.find_all("br"):
        br.replace_with("\n")
    for hr in soup.find_all("hr"):
        hr.replace_with("\n---\n")
    for link in soup.find_all("a", href=True):
        label = link.get_text(" ", strip=True)
        href = link["href"]
        link.replace_with(href if not label or label == href else f"{label} ({href})")
    # indentation between list items and table rows is not content
    for text_node in soup.find_all(string=True):
        if not text_node.strip() and text_node.parent is not None and text_node.parent.name in _CONTAINERS:
            text_node.extract()
    # innermost first, so nested blocks are already flattened when their parent is
    for tag in reversed(soup.find_all(list(_BLOCK_BREAKS))):
        prefix = "- " if tag.name == "li" else ""
        tag.replace_with(prefix + tag.get_text().strip() + _BLOCK_BREAKS[tag.name])

    text = "\n".join(line.strip() for line in soup.get_text().splitlines())
    text = re.sub(r"\n{3,}", "\n\n", text)
    return substitute_name(text, name).strip()


def render_template(template: EmailTemplate, name: str) -> RenderedEmail:
    return RenderedEmail(
        subject=substitute_name(template.subject, name),
        html_content=substitute_name_html(template.html_content, name),
        text_content=html_to_plain_text(template.html_content, name),
    )
