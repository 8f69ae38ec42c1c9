"""
Fake Playwright collaborators for driving the session cache and cleanup without a browser.
"""
import time


class FakeResponse:
    def __init__(self, status=200, status_text="OK"):
        self.status = status
        self.status_text = status_text

    @property
    def ok(self):
        return 200 <= self.status < 300


class FakeRequest:
    def __init__(self, response=None, error=None):
        self.response = response or FakeResponse()
        self.error = error
        self.calls = []

    def fetch(self, url, method="GET"):
        self.calls.append((method, url))
        if self.error is not None:
            raise self.error
        return self.response


class FakeKeyboard:
    def __init__(self):
        self.pressed = []

    def press(self, key):
        self.pressed.append(key)


class FakeLocator:
    def __init__(self, visible=False, count=0):
        self.visible = visible
        self._count = count
        self.clicks = 0

    @property
    def first(self):
        return self

    def nth(self, index):
        return self

    def count(self):
        return self._count

    def is_visible(self, timeout=None):
        return self.visible

    def click(self, timeout=None):
        self.clicks += 1


class FakePage:
    def __init__(self, context=None):
        self.context = context
        self.closed = False
        self.url = "about:blank"
        self.keyboard = FakeKeyboard()
        # selector -> FakeLocator; anything else resolves to an invisible locator
        self.locators = {}

    def is_closed(self):
        return self.closed

    def close(self):
        self.closed = True

    def wait_for_load_state(self, state=None, timeout=None):
        pass

    def locator(self, selector):
        return self.locators.setdefault(selector, FakeLocator())


class FakeContext:
    def __init__(self, storage_state=None, **options):
        self.state = storage_state or {"cookies": [], "origins": []}
        self.options = options
        self.pages = []
        self.closed = False
        self.request = FakeRequest()
        self.storage_error = None

    def new_page(self):
        page = FakePage(self)
        self.pages.append(page)
        return page

    def storage_state(self):
        if self.storage_error is not None:
            raise self.storage_error
        return self.state

    def close(self):
        self.closed = True


class FakeBrowser:
    def __init__(self):
        self.contexts = []
        self.reject_storage_state = False

    def new_context(self, **kwargs):
        if kwargs.get("storage_state") is not None and self.reject_storage_state:
            raise ValueError("invalid storage state")
        context = FakeContext(**kwargs)
        self.contexts.append(context)
        return context


class FakeLogin:
    """Stands in for the login flow: puts a session cookie into the page's context."""

    def __init__(self, error=None):
        self.error = error
        self.calls = []

    def __call__(self, page, profile):
        self.calls.append(profile.key)
        if self.error is not None:
            raise self.error
        page.context.state = {
            "cookies": [{"name": "session", "value": f"{profile.key}-{len(self.calls)}"}],
            "origins": [],
        }


class FakeProbe:
    def __init__(self, result=True):
        self.result = result
        self.calls = 0

    def __call__(self, page, timeout):
        self.calls += 1
        if isinstance(self.result, Exception):
            raise self.result
        return self.result


class Clock:
    """Settable clock starting at wall time, since state file ages come from real mtimes."""

    def __init__(self):
        self.now = time.time()

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


