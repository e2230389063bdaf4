import random

from flask import Blueprint, jsonify, request, current_app

from impostor.services.games.content import DIFFICULTIES, WORD_PACKS, pack_summaries, random_word
from impostor.services.games.state import LANGUAGES
from impostor.services.games.views import peek


games = Blueprint('games', __name__)


def _language():
    lang = (request.args.get('lang') or 'es').lower()
    return lang if lang in LANGUAGES else None


@games.route('/wordpacks', methods=['GET'])
def list_word_packs():
    lang = _language()
    if lang is None:
        return jsonify({'error': 'Unsupported language'}), 400
    return jsonify({'language': lang, 'packs': pack_summaries(lang)})


@games.route('/wordpacks/random', methods=['GET'])
def random_pack_word():
    lang = _language()
    if lang is None:
        return jsonify({'error': 'Unsupported language'}), 400
    pack_id = request.args.get('pack')
    difficulty = request.args.get('difficulty') or 'easy'
    if difficulty not in DIFFICULTIES:
        return jsonify({'error': 'Unknown difficulty'}), 400
    if not pack_id:
        # No pack requested: draw from any pack in this language
        packs = WORD_PACKS.get(lang, [])
        if not packs:
            return jsonify({'error': 'No word packs for this language'}), 404
        pack_id = random.choice(packs)['id']
    word = random_word(lang, pack_id, difficulty)
    if word is None:
        return jsonify({'error': 'Word pack not found'}), 404
    return jsonify({'word': word, 'pack': pack_id, 'difficulty': difficulty, 'language': lang})


@games.route('/<string:game_code>', methods=['GET'])
def peek_game(game_code):
    registry = current_app.extensions['session_registry']
    session = registry.get(game_code)
    if session is None:
        return jsonify({'error': 'Game not found'}), 404
    return jsonify(peek(session))
