import asyncio
import logging
from typing import Any, Callable, List

from prompt_toolkit import Application
from prompt_toolkit.key_binding import KeyBindings
from prompt_toolkit.key_binding.key_processor import KeyPressEvent
from prompt_toolkit.layout import Layout
from prompt_toolkit.layout.containers import HSplit
from prompt_toolkit.patch_stdout import patch_stdout
from prompt_toolkit.styles import Style
from prompt_toolkit.widgets import TextArea

from cineflow.dao.playlist_retrieval.base import BasePlaylistSource
from cineflow.dto.channel import ChannelEntity
from cineflow.parsers.m3u import parse_playlist
from cineflow.players.base import BasePlayer
from cineflow.services.browser import CatalogBrowser
from cineflow.services.catalog import Catalog

logger = logging.getLogger(__name__)

HELP_TEXT = (
    "Tab/Shift+Tab category  |  Up/Down move  |  ENTER open/play  |  "
    "Esc back  |  Ctrl+C quit"
)


class CLIService:
    def __init__(
        self,
        playlist_source: BasePlaylistSource,
        player: BasePlayer,
        url_resolver: Callable[[str], str],
    ) -> None:
        self.player: BasePlayer = player
        self.url_resolver = url_resolver

        channels: List[ChannelEntity] = parse_playlist(playlist_source.load())
        logger.info(f"Browsing {len(channels)} entries")
        self.browser: CatalogBrowser = CatalogBrowser(Catalog(channels))

        self.output_field: TextArea = TextArea(
            style="class:output",
            scrollbar=True,
            focusable=False,
            wrap_lines=False,
        )

        self.help_bar: TextArea = TextArea(
            text=HELP_TEXT,
            style="class:help",
            height=1,
            focusable=False,
        )

        self.input_field: TextArea = TextArea(
            height=1,
            prompt="Search: ",
            style="class:input",
            multiline=False,
            wrap_lines=False,
        )

        self.input_field.buffer.on_text_changed += self.on_text_change

        self.container: HSplit = HSplit(
            [
                self.output_field,
                self.help_bar,
                self.input_field,
            ],
            padding=0,
        )

        self.kb: KeyBindings = KeyBindings()
        self.kb.add("c-c")(self.exit_app)
        self.kb.add("up")(self.move_up)
        self.kb.add("down")(self.move_down)
        self.kb.add("enter")(self.open_selected)
        self.kb.add("escape")(self.go_back)
        self.kb.add("tab")(self.next_category)
        self.kb.add("s-tab")(self.previous_category)

    def exit_app(self, event: KeyPressEvent) -> None:
        self.player.stop()
        event.app.exit()

    def on_text_change(self, _: Any) -> None:
        asyncio.get_event_loop().call_soon(self.update_output)

    def move_up(self, event: KeyPressEvent) -> None:
        self.browser.move(-1)
        self.update_output()

    def move_down(self, event: KeyPressEvent) -> None:
        self.browser.move(1)
        self.update_output()

    def next_category(self, event: KeyPressEvent) -> None:
        self.browser.next_category(1)
        self.input_field.text = ""
        self.update_output()

    def previous_category(self, event: KeyPressEvent) -> None:
        self.browser.next_category(-1)
        self.input_field.text = ""
        self.update_output()

    def go_back(self, event: KeyPressEvent) -> None:
        if self.browser.back():
            self.update_output()

    def open_selected(self, event: KeyPressEvent) -> None:
        channel = self.browser.activate()
        if channel is not None:
            url = self.url_resolver(channel.playable_url)
            logger.info(f"Playing {channel.name} via {url}")
            self.player.play(url)
        self.update_output()

    def update_output(self) -> None:
        self.browser.set_search(self.input_field.text)
        self.output_field.text = "\n".join(self.browser.render())

    def run(self) -> None:
        logger.info("Starting interactive catalog browser")
        application: Application[Any] = Application(
            layout=Layout(self.container, focused_element=self.input_field),
            key_bindings=self.kb,
            full_screen=True,
            mouse_support=False,
            style=Style.from_dict(
                {
                    "output": "bg:#000000 #ffffff",
                    "input": "bg:#1a1a1a #ffffff",
                    "help": "bg:#333333 #aaaaaa",
                }
            ),
        )
        self.update_output()
        with patch_stdout():
            application.run()
